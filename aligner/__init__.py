"""Cross-venue balance aligner.

Keeps the aggregate balance of a set of currencies close to a configured
target by placing one corrective limit order per currency per cycle:

- types / market: value types and per-market rounding rules
- venue: venue session protocol and per-venue order tracking
- aggregator: sums balances across venues
- refill: corrective quantity per currency
- selector: venue / quote currency / price selection
- cycle: one alignment pass
- scheduler: periodic run loop
- runner: wiring and command line entry point

Default venues are in-memory paper sessions; live trading needs explicit opt-in.
"""
