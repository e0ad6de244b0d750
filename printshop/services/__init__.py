"""Business services of the print-shop workflow."""
