"""Background scheduling for daily earnings."""
