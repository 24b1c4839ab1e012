"""Tests for lock-protected conversation state transitions."""

from __future__ import annotations

import asyncio
import unittest

from deep_probe.state import ConversationState, StateManager


class StateManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate the conversation state machine."""

    async def test_transition_to_returns_new_state(self) -> None:
        manager = StateManager()
        self.assertIs(manager.state, ConversationState.IDLE)
        new_state = await manager.transition_to(ConversationState.SENDING)
        self.assertIs(new_state, ConversationState.SENDING)
        self.assertIs(manager.state, ConversationState.SENDING)

    async def test_transition_if_enforces_expected_state(self) -> None:
        manager = StateManager()
        changed = await manager.transition_if(
            ConversationState.SENDING, ConversationState.UPDATING
        )
        self.assertFalse(changed)
        self.assertEqual(manager.state, ConversationState.IDLE)

        changed = await manager.transition_if(
            ConversationState.IDLE, ConversationState.UPDATING
        )
        self.assertTrue(changed)
        self.assertEqual(manager.state, ConversationState.UPDATING)

    async def test_lock_prevents_double_send_entry(self) -> None:
        manager = StateManager()

        async def try_enter_sending() -> bool:
            await asyncio.sleep(0)
            return await manager.transition_if(
                ConversationState.IDLE, ConversationState.SENDING
            )

        results = await asyncio.gather(*(try_enter_sending() for _ in range(10)))
        self.assertEqual(sum(1 for result in results if result), 1)
        self.assertEqual(manager.state, ConversationState.SENDING)


if __name__ == "__main__":
    unittest.main()
