"""
Order lifecycle: status enums, the transition table, the state machine,
the order repository and the order service.
"""
