"""Detection orchestration for one page load."""
