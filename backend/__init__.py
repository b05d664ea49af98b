"""TeamLedger HTTP backend."""
