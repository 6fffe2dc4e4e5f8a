"""EZLeave - leave management backend."""
