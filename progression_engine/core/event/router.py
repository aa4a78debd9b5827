"""
Wildcard event-name matching for the progression EventBus.

Supported patterns
------------------
- "*" matches every event.
- "progression.*" matches any event with that prefix.
- "*.leveled_up" matches any event with that suffix.
- "progression.*.unlocked" matches ordered fragments around wildcards.

Matching is case-sensitive; repeated wildcards collapse to one.
"""

from __future__ import annotations


class EventRouter:
    """
    Stateless wildcard matcher.

    Examples
    --------
    >>> router = EventRouter()
    >>> router.matches("progression.leveled_up", "progression.*")
    True
    >>> router.matches("progression.leveled_up", "leaderboard.*")
    False
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        if pattern == "*":
            return True
        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        head, *middle, tail = pattern.split("*")

        if head and not event_name.startswith(head):
            return False
        if tail and not event_name.endswith(tail):
            return False
        if len(head) + len(tail) > len(event_name):
            return False

        cursor = len(head)
        stop = len(event_name) - len(tail)
        for fragment in middle:
            if not fragment:
                continue
            found = event_name.find(fragment, cursor, stop)
            if found == -1:
                return False
            cursor = found + len(fragment)

        return True
