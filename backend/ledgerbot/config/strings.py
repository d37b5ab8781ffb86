# /ledgerbot/config/strings.py

# All user-facing strings live here so they can be reworded or localized
# without touching flow logic.

HELP_MESSAGE = """🤖 *Budget Assistant Help*

💰 *Add an expense*
- "Spent $50 at Starbucks"
- "Add expense"

📊 *View transactions*
- "Show transactions"
- "Last 10 transactions"

💵 *View balances*
- "Show balances"

🏷️ *Categorize pending transactions*
- "Categorize transactions"

📄 *Process a statement*
- Send a PDF or a photo of your statement

*Commands:*
/reset - Restart everything
/cancel - Cancel the current conversation
/status - Show your session status
/help - This help

Type "cancel" to leave any conversation."""

NO_ROUTE_FOUND = """❌ I didn't understand that. Try:
- "Add expense"
- "Show transactions"
- "Show balances"
- "Categorize transactions"

Or type /help for more options."""

GENERIC_ERROR = "❌ Something went wrong. Please try again or type /reset."
COLLABORATOR_ERROR = "😔 Sorry, I couldn't reach the budgeting service right now. Please try again in a moment."

# Global commands
RESET_DONE = "🔄 Session restarted. How can I help you?"
CANCEL_DONE = "❌ Conversation cancelled. What else can I help you with?"
NOTHING_TO_CANCEL = "✅ There is no active conversation."

# Flow contract
FLOW_CANCELLED = "❌ Operation cancelled. Back to the main menu."
FLOW_HELP = '💡 Type "cancel" to leave this conversation.'
FLOW_INVALID_STATE = '❌ Unexpected state. Type "cancel" to start over.'

# Budget / account selection
NO_BUDGETS = "❌ No budgets were found for your account."
NO_ACCOUNTS = "❌ No accounts were found in this budget."
SELECT_BUDGET_HEADER = "📒 *Which budget?*"
SELECT_ACCOUNT_HEADER = "🏦 *Select an account*"
INVALID_SELECTION = "❌ Invalid choice. Reply with a number between 1 and {count} or part of the name."
ALL_ACCOUNTS_OPTION = '0. All accounts'
SELECT_CATEGORY_HEADER = "🏷️ *Select a category*"
CATEGORY_LIST_MORE = '... and {remaining} more. Reply "more" to see them.'
CATEGORY_LIST_FOOTER = 'Reply with the number or the name of the category, or "skip" to leave it uncategorized.'
CATEGORY_NOT_FOUND = '❌ I couldn\'t find a category named "{name}". Try again or reply with its number.'
NO_CATEGORIES = "❌ No categories were found in this budget."

# Add expense
ASK_AMOUNT = "💵 What's the amount?\n\nE.g. -50, $50, 100 soles\n(Negative for expenses, positive for income)"
INVALID_AMOUNT = "❌ I didn't get the amount. Try: -50, $50 or 100 soles"
ASK_PAYEE = "🏪 Where was it spent?\n\nE.g. Starbucks, Amazon, Uber"
INVALID_PAYEE = "❌ Please tell me the name of the merchant or person."
EXPENSE_CREATED = "✅ *Transaction created*\n\n🏦 {account}\n💵 {amount}\n🏪 {payee}\n📅 {date}"
ASK_MEMO = '💭 Any note to add? Reply with the note or "skip".'
CONFIRM_EXPENSE = "✅ *Confirm transaction*\n\n🏦 {account}\n💵 {amount}\n🏪 {payee}"
CONFIRM_EXPENSE_QUESTION = "Create it? (yes/no)"
CONFIRM_EXPENSE_REPROMPT = 'Create it? Reply "yes" or "no".'
EXPENSE_DISCARDED = "❌ Transaction discarded."

# Documents
DOCUMENT_MISSING = "❌ I couldn't read the attached document. Please send it again."
DOCUMENT_NO_TRANSACTIONS = "❌ I couldn't find any valid transactions in that document."
DOCUMENT_EXTRACTION_FAILED = "❌ I couldn't extract transactions from the document. Please try again with another file."
DOCUMENT_RESEND = "⏰ I no longer have the extracted transactions (they expire after {minutes} minutes). Please resend the document."
DOCUMENT_REVIEW_FOOTER = """💡 Total: {count} transactions

Reply *yes* to create them, *discard* to drop them,
or correct before confirming:
• Amounts: "1 is 146.16"
• Categories: "2 is Groceries"

This list is kept for {minutes} minutes."""
DOCUMENT_DISCARDED = "🗑️ Extracted transactions discarded."
DOCUMENT_NOTHING_TO_DISCARD = "✅ There are no extracted transactions to discard."
DOCUMENT_CORRECTED = "✏️ Applied {count} correction(s)."
DOCUMENT_CORRECTION_OUT_OF_RANGE = "❌ Transaction {index} doesn't exist. There are only {count} transactions."
DOCUMENT_CONFIRM_CANCELLED = "❌ Confirmation cancelled. The extracted transactions stay available for a few minutes."
DOCUMENT_CREATED = "✅ *Transactions created*\n\n✅ Created: {created}\n📊 Total processed: {total}"
DOCUMENT_CREATED_WITH_FAILURES = "✅ *Transactions created*\n\n✅ Created: {created}\n❌ Failed: {failed}\n📊 Total processed: {total}"

# Categorization
NO_UNCATEGORIZED = "🎉 All transactions in this budget are already categorized."
CATEGORIZE_HEADER = "🏷️ *Uncategorized transactions*"
CATEGORIZE_FOOTER = 'Reply "<number> <category>" (e.g. "1 Groceries") or "done" to finish.'
CATEGORIZE_EXPIRED = "⏰ The categorization list expired. Type \"categorize transactions\" to start again."
CATEGORIZE_UNKNOWN_CATEGORY = "❌ I couldn't find a category named \"{name}\"."
CATEGORIZE_BAD_INPUT = 'Reply "<number> <category>" (e.g. "1 Groceries") or "done".'
CATEGORIZE_APPLIED = "✅ {payee} → {category} ({remaining} left)"
CATEGORIZE_DONE = "🏁 Categorization finished. {count} transactions updated."

# Balances and transactions
BALANCES_HEADER = "💵 *Balances - {budget}*"
TRANSACTIONS_HEADER = "📊 *Last {count} transactions - {budget}*"
NO_TRANSACTIONS = "📭 No transactions found."
