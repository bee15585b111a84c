"""Standard small-business chart of accounts used by seed-default."""

# (account_number, name, type, sub_type, normal_balance or None for the type default)
DEFAULT_CHART = (
    ("1000", "Cash and Cash Equivalents", "Asset", "Current Asset", None),
    ("1010", "Checking Account", "Asset", "Current Asset", None),
    ("1020", "Savings Account", "Asset", "Current Asset", None),
    ("1100", "Accounts Receivable", "Asset", "Current Asset", None),
    ("1150", "Allowance for Doubtful Accounts", "Asset", "Current Asset", "Credit"),
    ("1200", "Prepaid Expenses", "Asset", "Current Asset", None),
    ("1500", "Property and Equipment", "Asset", "Fixed Asset", None),
    ("1510", "Computer Equipment", "Asset", "Fixed Asset", None),
    ("1520", "Furniture and Fixtures", "Asset", "Fixed Asset", None),
    ("1550", "Accumulated Depreciation", "Asset", "Fixed Asset", "Credit"),
    ("1600", "Intangible Assets", "Asset", "Non-Current Asset", None),
    ("2000", "Accounts Payable", "Liability", "Current Liability", None),
    ("2100", "Accrued Expenses", "Liability", "Current Liability", None),
    ("2110", "Accrued Wages", "Liability", "Current Liability", None),
    ("2120", "Accrued Benefits", "Liability", "Current Liability", None),
    ("2200", "Deferred Revenue", "Liability", "Current Liability", None),
    ("2300", "Sales Tax Payable", "Liability", "Current Liability", None),
    ("2400", "Payroll Tax Payable", "Liability", "Current Liability", None),
    ("2500", "Short-Term Debt", "Liability", "Current Liability", None),
    ("2600", "Long-Term Debt", "Liability", "Long-Term Liability", None),
    ("3000", "Common Stock", "Equity", "Equity", None),
    ("3100", "Additional Paid-In Capital", "Equity", "Equity", None),
    ("3200", "Retained Earnings", "Equity", "Retained Earnings", None),
    ("3300", "Owner Draws", "Equity", "Equity", "Debit"),
    ("4000", "Service Revenue", "Revenue", "Operating Revenue", None),
    ("4100", "Subscription Revenue", "Revenue", "Operating Revenue", None),
    ("4200", "Product Revenue", "Revenue", "Operating Revenue", None),
    ("4300", "Consulting Revenue", "Revenue", "Operating Revenue", None),
    ("4400", "License Revenue", "Revenue", "Operating Revenue", None),
    ("4900", "Other Revenue", "Revenue", "Other Revenue", None),
    ("4910", "Interest Income", "Revenue", "Other Revenue", None),
    ("5000", "Cost of Services", "Expense", "COGS", None),
    ("5100", "Direct Labor", "Expense", "COGS", None),
    ("5200", "Contractor Costs", "Expense", "COGS", None),
    ("5300", "Hosting and Infrastructure", "Expense", "COGS", None),
    ("5400", "Third-Party Services", "Expense", "COGS", None),
    ("5500", "Payment Processing Fees", "Expense", "COGS", None),
    ("6000", "Salaries and Wages", "Expense", "Operating Expense", None),
    ("6050", "Non-Billable Labor", "Expense", "Operating Expense", None),
    ("6100", "Payroll Taxes", "Expense", "Operating Expense", None),
    ("6150", "Employee Benefits", "Expense", "Operating Expense", None),
    ("6200", "Rent Expense", "Expense", "Operating Expense", None),
    ("6250", "Utilities", "Expense", "Operating Expense", None),
    ("6300", "Software Subscriptions", "Expense", "Operating Expense", None),
    ("6400", "Marketing and Advertising", "Expense", "Operating Expense", None),
    ("6500", "Professional Services", "Expense", "Operating Expense", None),
    ("6600", "Travel and Entertainment", "Expense", "Operating Expense", None),
    ("6700", "Insurance", "Expense", "Operating Expense", None),
    ("6800", "Office Supplies", "Expense", "Operating Expense", None),
    ("6900", "Depreciation Expense", "Expense", "Operating Expense", None),
    ("6950", "Amortization Expense", "Expense", "Operating Expense", None),
    ("7000", "Interest Expense", "Expense", "Other Expense", None),
    ("7100", "Bank Fees", "Expense", "Other Expense", None),
    ("7200", "Bad Debt Expense", "Expense", "Other Expense", None),
    ("7900", "Income Tax Expense", "Expense", "Other Expense", None),
)
