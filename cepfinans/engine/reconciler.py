"""
Balance Reconciler

Derives the new account balances after a transaction.

GUARANTEES:
- The input balances are never mutated; a new snapshot is returned
- Transfers conserve the total across the three accounts
- Income and expense change exactly one account

No insufficient-funds check happens here. Expenses may take an
account negative, and transfer amounts are validated by the caller
before the transaction reaches this function.
"""

from cepfinans.models.finance import (
    AccountBalances,
    Transaction,
    TransactionType,
)


def apply_transaction(balances: AccountBalances, transaction: Transaction) -> AccountBalances:
    """Return the balances that result from recording `transaction`."""
    amount = transaction.amount

    if transaction.type == TransactionType.INCOME:
        account = transaction.account
        return balances.with_updates({account: balances.get(account) + amount})

    if transaction.type == TransactionType.EXPENSE:
        account = transaction.account
        return balances.with_updates({account: balances.get(account) - amount})

    # Transfer: both sides change in the same snapshot
    source, target = transaction.transfer_from, transaction.transfer_to
    return balances.with_updates({
        source: balances.get(source) - amount,
        target: balances.get(target) + amount,
    })
