# /ledgerbot/config/prompts.py

# Prompts sent to the AI models. Both expect a JSON object back.

INTENT_PROMPT_TEMPLATE = """You route messages for a personal budgeting assistant.
Classify the user's message into exactly one of these intents:

- add_expense: the user wants to record a new expense or income
- view_transactions: the user wants to see recent transactions
- view_balance: the user wants to see account balances
- categorize_transactions: the user wants to assign categories to uncategorized transactions
- help: the user asks what the assistant can do
- unknown: none of the above

Respond with a JSON object of the form {{"intent": "<one of the intents above>"}}.

User message: "{message}"
"""

EXTRACTION_PROMPT_TEMPLATE = """Analyze the following bank statement and extract ALL of its transactions.

IMPORTANT:
- Charges / debits are NEGATIVE amounts (e.g. -480.00)
- Deposits / credits are POSITIVE amounts (e.g. 1.50)
- Convert every date to YYYY-MM-DD (use the current year, {year}, when it is missing)
- Ignore headers, totals and any line that is not a transaction
{categories_block}
Respond ONLY with valid JSON (no markdown):
{{
  "transactions": [
    {{
      "date": "YYYY-MM-DD",
      "amount": -480.00,
      "payee": "Merchant name",
      "categoryName": "Suggested category (from the list)",
      "memo": "Optional note"
    }}
  ]
}}

STATEMENT:
{document}
"""

IMAGE_EXTRACTION_PROMPT = """This image is a receipt or a bank statement.
Extract every transaction it shows. Expenses are NEGATIVE amounts and income is POSITIVE.
Dates must be YYYY-MM-DD (use the current year, {year}, when it is missing).
{categories_block}Respond ONLY with a JSON object: {{"transactions": [{{"date": "...", "amount": 0.0, "payee": "...", "categoryName": null, "memo": null}}]}}"""
