"""Progress operators shared by exercise handlers."""
