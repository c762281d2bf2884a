"""Hardware protocol drivers."""
