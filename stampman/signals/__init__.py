"""
Stampman signals: public event API.

Emitted by stampman.service.StampService after the transaction that
produced the change has finished:
- customer_enrolled: sender=Customer, customer
- stamps_granted: sender=Customer, customer, grant (StampGrant)
- reward_unlocked: sender=Customer, customer, unlock_event
- reward_redeemed: sender=Customer, customer, record (RedemptionRecord)

Replayed (idempotent) grants emit nothing.
"""

from django.dispatch import Signal

customer_enrolled = Signal()
stamps_granted = Signal()
reward_unlocked = Signal()
reward_redeemed = Signal()
