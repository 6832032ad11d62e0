"""
Trading engine

Stages of the signal-to-order pipeline:
- signal_validator: raw alert -> Signal
- order_sizing: Signal + balance -> amount
- trade_executor: amount -> exchange order
- trade_recorder: exchange order -> Trade row (with P&L for sells)
"""
