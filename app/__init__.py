"""Atlantic Pool standings synchronisation and scoring service."""
