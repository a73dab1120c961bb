"""Philippine payroll and time-attendance engine."""

__version__ = "0.1.0"
