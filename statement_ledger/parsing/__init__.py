"""Amount, date and transaction parsing for statement text and CSV exports."""
