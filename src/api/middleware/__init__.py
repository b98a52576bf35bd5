"""Exception handling shared by every endpoint."""
