"""
Example: Recurring buys through a CronSwapper and a Vault.

This example walks through both ways of dollar-cost averaging:
1. CronSwapper: participants commit a daily amount for a number of days and
   a keeper runs one aggregate swap per day.
2. Vault: participants deposit, set a per-buy allocation, and every buy()
   splits the proceeds pro rata, retaining the rounding residual.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from cronledger import (
    Clock, TokenLedger, Token, FixedRateExchange, CronSwapper, Vault,
    Registry, Keeper,
)


def main():
    print("=" * 80)
    print("RECURRING BUYS - CronSwapper and Vault Example")
    print("=" * 80)
    print()

    start = datetime(2025, 1, 1, 9, 0)
    clock = Clock(start)
    ledger = TokenLedger("demo", clock, verbose=True)

    usdc = Token("USDC", "USD Coin", 6)
    wbtc = Token("WBTC", "Wrapped Bitcoin", 8)
    ledger.register_token(usdc)
    ledger.register_token(wbtc)
    for wallet in ("alice", "bob", "carol"):
        ledger.register_wallet(wallet)
        ledger.mint(wallet, "USDC", usdc.parse_units("1000"))

    exchange = FixedRateExchange(ledger, rates={("USDC", "WBTC"): Decimal("0.0015")})
    ledger.mint(exchange.wallet_id, "WBTC", wbtc.parse_units("10"))

    swapper = CronSwapper(ledger, "USDC", "WBTC", exchange, owner="deployer", verbose=True)
    vault = Vault(ledger, "USDC", "WBTC", exchange, owner="deployer",
                  wallet_id="vault:USDC->WBTC", verbose=True)

    registry = Registry(owner="deployer")
    registry.add_vault("deployer", swapper)

    print()
    print("Example 1: Daily batches")
    print("-" * 80)
    print("alice sells 10 USDC/day for 5 days, bob 25 USDC/day for 3 days.")
    print("Both start tomorrow: the deploy day counts as already executed.")
    print()

    for who, amount, days in [("alice", "10", 5), ("bob", "25", 3)]:
        daily = usdc.parse_units(amount)
        ledger.approve(who, swapper.wallet_id, "USDC", daily * days)
        swapper.enter(who, daily, days)

    keeper = Keeper(clock, "deployer", verbose=True)
    keeper.register("usdc-wbtc", registry.tokens_to_vault("USDC", "WBTC"))

    # Day 3 is skipped: bob's last day is folded into day 4's single swap
    keeper.run([start + timedelta(days=d) for d in (1, 2, 4, 5, 6)])

    print()
    print(f"Swapper WBTC: {wbtc.format_units(ledger.get_balance(swapper.wallet_id, 'WBTC'))}")
    print(f"Swapper USDC left in custody: "
          f"{usdc.format_units(ledger.get_balance(swapper.wallet_id, 'USDC'))}")
    print()

    print("Example 2: Pro-rata vault")
    print("-" * 80)
    print("Three participants allocate 58, 16 and 76 USDC to one buy.")
    print()

    for who, amount in [("alice", "58"), ("bob", "16"), ("carol", "76")]:
        quantity = usdc.parse_units(amount)
        ledger.approve(who, vault.wallet_id, "USDC", quantity)
        vault.deposit(who, quantity)
        vault.allocate(who, quantity)

    vault.buy("deployer")

    print()
    for who in ("alice", "bob", "carol"):
        print(f"  {who:6s} WBTC: {wbtc.format_units(vault.balance_of(who, 'WBTC'))}")
    print(f"  residual retained: {vault.residual('WBTC')} base units")
    print()

    result = ledger.verify_conservation()
    print(f"Conservation holds: {result['valid']}")
    print(f"Circulating supplies: {result['supplies']}")


if __name__ == "__main__":
    main()
