"""Property-based tests for wallet balance invariants.

**Feature: tutorlink, Property 1: Wallet Balance Never Negative**
**Feature: tutorlink, Property 2: Ledger Conservation**
"""

import asyncio

from hypothesis import given, settings, strategies as st
from sqlalchemy import select

from tests.factories import add_user, create_schema, create_test_engine
from tutorlink.core.config import PricingPolicy
from tutorlink.core.exceptions import InsufficientFundsError
from tutorlink.models.wallet import TransactionType, WalletTransaction
from tutorlink.services.wallet_service import WalletService


# A mutation is ("debit" | "credit", amount)
mutation_strategy = st.tuples(
    st.sampled_from(["debit", "credit"]),
    st.integers(min_value=1, max_value=300),
)


async def apply_mutations(mutations: list[tuple[str, int]]) -> tuple[int, int, list[int], list]:
    """Run mutations one unit of work each; return (initial, final, observed balances, ledger)."""
    engine = create_test_engine()
    session_maker = await create_schema(engine)
    wallets = WalletService(PricingPolicy())
    observed = []
    try:
        async with session_maker() as session:
            async with session.begin():
                user = await add_user(session)
                wallet = await wallets.ensure_wallet(session, user.id)
                initial = wallet.balance
            # Ids stay readable after a rolled-back debit expires the rows
            user_id, wallet_id = user.id, wallet.id

            for kind, amount in mutations:
                try:
                    async with session.begin():
                        if kind == "debit":
                            await wallets.debit(session, user_id, amount, "Debit")
                        else:
                            await wallets.credit(session, user_id, amount, "Credit")
                except InsufficientFundsError:
                    pass
                async with session.begin():
                    observed.append(await wallets.get_balance(session, user_id))

            async with session.begin():
                final = await wallets.get_balance(session, user_id)
                result = await session.execute(
                    select(WalletTransaction).where(WalletTransaction.wallet_id == wallet_id)
                )
                ledger = [(entry.type, entry.amount) for entry in result.scalars().all()]
    finally:
        await engine.dispose()
    return initial, final, observed, ledger


@settings(max_examples=100, deadline=None)
@given(mutations=st.lists(mutation_strategy, min_size=1, max_size=12))
def test_balance_never_negative(mutations: list[tuple[str, int]]) -> None:
    """
    **Feature: tutorlink, Property 1: Wallet Balance Never Negative**

    *For any* sequence of debits and credits, the wallet balance observed
    after every unit of work SHALL be greater than or equal to zero, and a
    debit larger than the balance SHALL leave the balance unchanged.
    """
    initial, final, observed, _ = asyncio.run(apply_mutations(mutations))

    assert initial == 150
    assert all(balance >= 0 for balance in observed)

    previous = initial
    for (kind, amount), balance in zip(mutations, observed):
        if kind == "debit" and amount > previous:
            assert balance == previous
        elif kind == "debit":
            assert balance == previous - amount
        else:
            assert balance == previous + amount
        previous = balance


@settings(max_examples=100, deadline=None)
@given(mutations=st.lists(mutation_strategy, min_size=1, max_size=12))
def test_ledger_conservation(mutations: list[tuple[str, int]]) -> None:
    """
    **Feature: tutorlink, Property 2: Ledger Conservation**

    *For any* sequence of debits and credits, the final balance SHALL equal
    the initial balance plus the sum of credit entries minus the sum of
    debit entries recorded in the ledger.
    """
    initial, final, _, ledger = asyncio.run(apply_mutations(mutations))

    credits = sum(amount for kind, amount in ledger if kind != TransactionType.DEBIT)
    debits = sum(amount for kind, amount in ledger if kind == TransactionType.DEBIT)
    assert final == initial + credits - debits
