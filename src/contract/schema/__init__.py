"""Schema derivation and the registry of exported component schemas."""
