"""Pure domain primitives: time, identity, currency."""
