# wealthdesk/__init__.py
"""Portfolio holdings and valuation engine."""
