"""CodeIt platform verification and stats synchronization engine."""
