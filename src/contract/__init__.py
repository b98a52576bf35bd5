"""Metadata-driven API contract engine.

Payload types and operations declare their wire contract once, with
``PropertyMeta`` annotations and the ``api_*`` decorators. The modules in
this package read those declarations back to resolve response tables,
derive schema documents and validation rules, and normalize values for
transport.
"""
