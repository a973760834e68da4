"""Order-lifecycle reconciliation and automated clearing engine.

Watch the trader's open orders on one topic, detect when a tracked buy
order has been completely filled, and place an offsetting sell order at a
price that never realises a loss and never crosses the book.
"""
