"""
Nominations module.

Scope:
- Members submit nominations (review of at least 100 characters)
- The administrator approves or rejects pending nominations
- Approval grants the nominator directory access, materializes the Boss row
  and queues the nominator/boss emails

Hard constraints:
- A nomination leaves `pending` exactly once
- Email failures never undo a transition
"""
