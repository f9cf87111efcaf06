"""
VocalFlow - Main Program

Admins script a sequence of video questions; candidates record video
answers that Gemini analyzes, and the results go to a webhook.
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, Confirm
from rich.table import Table
from rich.text import Text
from loguru import logger

from config import config
from vocalflow.capture.playback import play_clip
from vocalflow.capture.video_recorder import VideoRecorder
from vocalflow.clients.gemini_client import GeminiAnalyzerClient
from vocalflow.clients.webhook_client import WebhookClient
from vocalflow.flows.editor import FlowEditor
from vocalflow.flows.flow_store import ClipStore, FlowStore
from vocalflow.orchestrator.orchestrator import SessionOrchestrator
from vocalflow.orchestrator.state import InterviewSession, SessionState
from vocalflow.schema import Clip, InterviewFlow, Question
from vocalflow.utils.error_handlers import DeviceError, FlowValidationError

console = Console()


def format_time(seconds: int) -> str:
    return f"{seconds // 60}:{seconds % 60:02d}"


class VocalFlowApp:
    """Terminal front end for authoring flows and running interviews"""

    def __init__(self):
        self.console = console
        self.store = FlowStore()
        self.clip_store = ClipStore()

    async def run(self, args):
        """Main application entry"""
        self._show_welcome()

        try:
            if args.clear:
                if Confirm.ask("Delete the stored interview flow?", default=False):
                    self.store.clear()
                    self.console.print("[green]Stored flow deleted.[/green]")
            elif args.show:
                self._show_flow(self.store.load())
            elif args.check:
                self._check_system()
            elif args.admin:
                await self._run_admin()
            elif args.interview:
                await self._run_interview()
            else:
                choice = Prompt.ask("Mode", choices=["admin", "interview", "quit"], default="interview")
                if choice == "admin":
                    await self._run_admin()
                elif choice == "interview":
                    await self._run_interview()

        except KeyboardInterrupt:
            self.console.print("\n[yellow]⚠️  Cancelled by user.[/yellow]")
        except Exception as e:
            logger.exception("Unexpected error")
            self.console.print(f"[red]❌ Error: {str(e)}[/red]")

    def _show_welcome(self):
        panel = Panel(
            """🎬  [bold cyan]VocalFlow Video Interviews[/bold cyan]

Admins record a video for every question.
Candidates watch it and record a reply, Gemini analyzes each reply,
and the results are sent to your webhook.""",
            title="Welcome",
            border_style="cyan"
        )
        self.console.print(panel)

    def _check_system(self):
        self.console.print("\n[bold]🔍 System Check[/bold]")
        self.console.print_json(json.dumps(config.get_summary()))
        if config.validate():
            self.console.print("[green]✅ Ready.[/green]")
        else:
            self.console.print("[red]❌ Some checks failed, see the log above.[/red]")

    def _show_flow(self, flow: Optional[InterviewFlow]):
        if flow is None:
            self.console.print("[yellow]No interview flow has been set up yet.[/yellow]")
            return
        table = Table(title=f"{flow.title}")
        table.add_column("No", style="cyan")
        table.add_column("Question", style="white")
        table.add_column("Prompt clip", style="dim")
        for index, question in enumerate(flow.questions, 1):
            table.add_row(str(index), question.text, question.prompt_clip_ref)
        self.console.print(table)
        self.console.print(f"Webhook: [cyan]{flow.destination_endpoint or '(none)'}[/cyan]")

    # --- Recording ---

    async def _record_clip(self, max_duration: int, label: str) -> Optional[Clip]:
        """Record one take with retakes allowed. None if the camera is unusable."""

        def on_tick(elapsed: int):
            self.console.print(f"[red]⏺ {format_time(elapsed)}[/red] / {format_time(max_duration)}", end="\r")

        async with VideoRecorder(max_duration=max_duration, on_tick=on_tick) as recorder:
            while True:
                try:
                    await recorder.acquire()
                except DeviceError as e:
                    self.console.print(Panel(f"[red]{e}[/red]\n{e.recovery_suggestion}", title="Camera access denied", border_style="red"))
                    if Confirm.ask("Try again?", default=True):
                        continue
                    return None

                await asyncio.to_thread(input, f"🎥 {label}: press Enter to START recording...")
                handle = await recorder.start_recording()
                stop_task = asyncio.create_task(asyncio.to_thread(input, "Press Enter to STOP...\n"))
                done, _ = await asyncio.wait({stop_task, asyncio.ensure_future(handle.result())},
                                             return_when=asyncio.FIRST_COMPLETED)
                if stop_task not in done:
                    self.console.print("\n[yellow]⏱️ Time limit reached. Press Enter to continue.[/yellow]")
                    await stop_task
                clip = await recorder.stop_recording(handle)

                self.console.print(f"\n✅ Recorded {clip.duration_seconds:.1f}s ({clip.size / 1024:.0f}KB)")
                if clip.size and Confirm.ask("Keep this take?", default=True):
                    return clip
                await recorder.discard_and_restart()

    # --- Admin ---

    async def _run_admin(self):
        editor = FlowEditor.from_store(self.store, self.clip_store)
        self.console.print(Panel("[bold]Edit Flow[/bold]" if editor.flow_id else "[bold]New Interview Flow[/bold]",
                                 border_style="cyan"))

        editor.set_title(Prompt.ask("Flow title", default=editor.title or None) or "")
        editor.set_destination_endpoint(Prompt.ask("Webhook URL (empty for none)", default=editor.destination_endpoint))

        while True:
            self._show_flow(editor.build())
            action = Prompt.ask("\n[a]dd question, [r]emove question, [s]ave, [q]uit", choices=["a", "r", "s", "q"], default="a")

            if action == "a":
                text = Prompt.ask("Question text")
                clip = await self._record_clip(config.capture.prompt_max_duration, "Record yourself asking the question")
                try:
                    editor.add_question(text, clip)
                except FlowValidationError as e:
                    self.console.print(f"[red]{e}[/red]")

            elif action == "r" and editor.questions:
                number = int(Prompt.ask("Question number to remove", choices=[str(i) for i in range(1, len(editor.questions) + 1)]))
                editor.remove_question(editor.questions[number - 1].id)

            elif action == "s":
                try:
                    editor.save()
                    self.console.print("[bold green]✅ Flow saved.[/bold green]")
                    return
                except FlowValidationError as e:
                    self.console.print(f"[red]❌ {e}[/red] {e.recovery_suggestion}")

            elif action == "q":
                editor.discard()
                return

    # --- Interview ---

    async def _run_interview(self):
        flow = self.store.load()
        if flow is None:
            self.console.print("[red]No interview flow has been set up yet. Please enter Admin mode to create one.[/red]")
            return

        webhook_client = WebhookClient()
        orchestrator = SessionOrchestrator(
            flow=flow,
            analyzer=GeminiAnalyzerClient(),
            webhook_client=webhook_client,
            on_state_change=self._on_state_change,
            on_notice=lambda message: self.console.print(Panel(message, title="Note", border_style="yellow")),
        )

        async def on_question(question: Question, index: int):
            self.console.print(Panel(
                Text(f'"{question.text}"', style="bold"),
                title=f"🎙️ Question {index + 1} of {len(flow.questions)}",
                border_style="cyan",
            ))
            if Confirm.ask("Play the interviewer's video?", default=True):
                await play_clip(self.clip_store.path(question.prompt_clip_ref), window_title="Interviewer")

        async def answer_source(question: Question, index: int) -> Optional[Clip]:
            if orchestrator.state is SessionState.FAILED and orchestrator.held_clip is not None:
                if Confirm.ask("Retry with the same recording?", default=True):
                    return orchestrator.held_clip
            clip = await self._record_clip(config.capture.answer_max_duration, "Your Answer")
            if clip is None and not Confirm.ask("Cancel the session?", default=False):
                return await answer_source(question, index)
            return clip

        self.console.print("\n[bold green]🎬 Live Session[/bold green] [dim](Ctrl+C cancels)[/dim]")
        try:
            session = await orchestrator.run(answer_source, on_question=on_question)
        finally:
            await webhook_client.close()

        self._show_results(session, orchestrator)

    def _on_state_change(self, session: InterviewSession):
        if session.state is SessionState.ANALYZING:
            self.console.print("[yellow]🤖 AI is analyzing your response...[/yellow]")
        elif session.state is SessionState.SUBMITTING:
            self.console.print("[yellow]📤 Finalizing results...[/yellow]")

    def _show_results(self, session: InterviewSession, orchestrator: SessionOrchestrator):
        if session.state is SessionState.EXITED:
            if orchestrator.submission_started:
                self.console.print("\n[yellow]Session cancelled, but the results had already been sent to the webhook.[/yellow]")
            else:
                self.console.print("\n[yellow]Session cancelled. No results were sent.[/yellow]")
            return

        payload = orchestrator.payload
        if payload is None:
            return

        table = Table(title=f"Interview Results ({payload.submitted_at:%Y-%m-%d %H:%M} UTC)")
        table.add_column("No", style="cyan")
        table.add_column("Question", style="white")
        table.add_column("Sentiment", style="magenta")
        table.add_column("Score", style="green")
        for index, result in enumerate(payload.results, 1):
            table.add_row(str(index), result.question_text or "", result.analysis.sentiment, str(result.analysis.score))
        self.console.print(table)
        self.console.print("\n[bold green]✅ Interview completed. Thank you![/bold green]")


def main():
    """Program entry point"""
    parser = argparse.ArgumentParser(
        description="VocalFlow - video interviews analyzed by Gemini",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vocalflow --admin        # create or edit the interview flow
  vocalflow --interview    # run a candidate session
  vocalflow --show         # print the stored flow
        """
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--admin', action='store_true', help='Create or edit the interview flow')
    mode.add_argument('--interview', action='store_true', help='Run a candidate interview session')
    mode.add_argument('--show', action='store_true', help='Show the stored interview flow')
    mode.add_argument('--clear', action='store_true', help='Delete the stored interview flow')
    mode.add_argument('--check', action='store_true', help='Check configuration and tools')

    args = parser.parse_args()

    app = VocalFlowApp()

    try:
        asyncio.run(app.run(args))
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Program closed.[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[red]Critical error: {str(e)}[/red]")
        logger.exception("Critical error")
        sys.exit(1)


if __name__ == "__main__":
    main()
