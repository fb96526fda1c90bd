"""
Offline console demo. Runs full sales conversations without any API keys.

Uses the real flow manager, product flows, flow executor and handoff
service wired over the in-memory stores and the keyword classifier. No
language model, no Messenger, no network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario malla
    python console_demo.py --scenario mayoreo
"""

import argparse
import asyncio
from typing import Optional

from salesflow.config import settings
from salesflow.schemas.message_schema import CampaignContext, ChannelContext, FlowResponse
from salesflow.service import build_components

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


class ConsoleSession:
    """Plays one customer's Messenger conversation in the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "malla": [
            "hola",
            "quiero malla sombra",
            "3.5x4.5",
            "sí",
            "hacen envíos?",
            "gracias",
        ],
        "rollo": [
            "busco rollo de malla sombra",
            "de 4.20 de ancho",
            "al 90",
            "aceptan tarjeta?",
        ],
        "mayoreo": [
            "precio de mayoreo",
            "Juan Pérez",
            "Monterrey",
            "20 mallas de 4x5",
            "20",
            "1",
            "8112345678",
        ],
        "asesor": [
            "rollo de 4.20",
            "quiero hablar con un asesor",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, customer_id: str = "console-demo", campaign: Optional[CampaignContext] = None) -> None:
        self.customer_id = customer_id
        self.components = build_components()
        self.channel = ChannelContext(channel="messenger")
        self.campaign = campaign

    def bot_say(self, response: FlowResponse) -> None:
        if not response.text:
            self.system_log(f"(no reply, {response.handled_by})")
            return
        print(f"{GREEN}{BOLD}[{settings.bot_name}]{RESET} {GREEN}{response.text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    async def send(self, text: str) -> FlowResponse:
        response = await self.components.service.process(
            self.customer_id, text, channel=self.channel, campaign=self.campaign
        )
        self.bot_say(response)
        await self._log_state(response)
        return response

    async def _log_state(self, response: FlowResponse) -> None:
        session = await self.components.sessions.get(self.customer_id)
        if session is None:
            self.system_log(f"Handled by: {response.handled_by} (session not saved)")
            return
        self.system_log(
            f"Handled by: {response.handled_by} | state: {session.flow_state.tag} "
            f"| intent: {session.purchase_intent.value if session.purchase_intent else '-'}"
        )
        if response.handoff:
            self.system_log(f"{YELLOW}Handoff: {session.handoff_reason}{RESET}")

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"SALES FLOW ORCHESTRATOR - Scenario: {scenario}")
        for step in steps:
            print(f"\n{BLUE}[Cliente] {RESET}{step}")
            await self.send(step)

        await self._summary(f"Scenario '{scenario}' complete.")

    async def run(self) -> None:
        self._banner("SALES FLOW ORCHESTRATOR - Console Demo", "Type 'quit' to exit")
        while True:
            user_input = input(f"\n{BLUE}[Cliente] {RESET}").strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                break
            if len(user_input) > self.MAX_INPUT_LENGTH:
                print(f"{YELLOW}Mensaje demasiado largo, intenta algo más breve.{RESET}")
                continue
            await self.send(user_input)

        await self._summary("Conversation complete.")

    def _banner(self, title: str, hint: Optional[str] = None) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        if hint:
            print(f"{BOLD}  {hint}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def _summary(self, title: str) -> None:
        await self.components.handoff.drain()
        session = await self.components.sessions.get(self.customer_id)
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        if session is not None:
            print(f"{DIM}  Final state: {session.flow_state.tag}{RESET}")
            print(f"{DIM}  Specs: {session.product_specs.model_dump(exclude_none=True)}{RESET}")
            if session.flow_collected_data:
                print(f"{DIM}  Lead data: {session.flow_collected_data}{RESET}")
        for note in self.components.notifier.sent:
            print(f"{YELLOW}  Notified sales: {note.reason}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
