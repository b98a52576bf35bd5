"""Response bodies owned by the API layer.

The models carry ``PropertyMeta`` declarations, so they are documented by
the same schema factory as application payloads.
"""
