"""Command-line interface for Recollect.

Subcommands:
    chat        interactive chat with memory
    facts       list, add, edit, verify and delete remembered facts
    summarize   summarize one conversation
    context     show the prompt assembled for a conversation
    check       show whether a message would be considered for fact extraction
    config      show or change settings
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from groq import AsyncGroq

from .config import DEFAULT_CONFIG_PATH, EngineConfig, load_config, save_config
from .context import ContextAssembler
from .conversations import ConversationStore
from .llm import GenerationClient, GenerationError, GroqGenerationClient
from .logging import JSONLLogger
from .memory import FactExtractor, FactGate, MemoryManager, MemoryStore
from .models import FactCategory
from .session import ChatSession
from .summary import ChunkedSummarizer
from .tokens import estimate_tokens

BANNER = """
╔══════════════════════════════════════════╗
║              Recollect v0.1.0            ║
║       Chat that remembers you            ║
╚══════════════════════════════════════════╝

Commands:
  /new          - Start a new conversation
  /exit, /quit  - Exit the CLI
  /help         - Show this help

Type your message and press Enter.
"""

LAYER_NAMES = ("Session info", "User memory", "Recent conversations", "Current conversation")


def _open_memory(config: EngineConfig, extractor: FactExtractor | None = None) -> MemoryManager:
    store = MemoryStore(config.facts_db_path)
    store.init_db()
    return MemoryManager(store, extractor=extractor)


def _open_conversations(config: EngineConfig) -> ConversationStore:
    return ConversationStore(config.conversations_dir)


def _make_client(config: EngineConfig) -> GroqGenerationClient:
    """Create the Groq-backed generation client."""
    return GroqGenerationClient(AsyncGroq(api_key=os.getenv("GROQ_API_KEY")), model=config.model)


def build_session(
    config: EngineConfig,
    client: GenerationClient | None = None,
) -> ChatSession:
    """Wire stores, memory, summarizer and event log into a ChatSession."""
    client = client or _make_client(config)
    event_log = JSONLLogger(log_dir=config.log_dir)

    memory = _open_memory(config, extractor=FactExtractor(client))
    memory.event_log = event_log

    summarizer = ChunkedSummarizer(
        client,
        chunk_size=config.chunk_size,
        max_chunks=config.max_chunks,
        event_log=event_log,
    )

    return ChatSession(
        client,
        _open_conversations(config),
        memory,
        summarizer,
        assembler=ContextAssembler(config.budget),
        event_log=event_log,
    )


class ChatREPL:
    """Interactive chat loop over a ChatSession."""

    def __init__(self, session: ChatSession) -> None:
        self.session = session
        self.session.on_facts_saved = self._on_facts_saved

    def _on_facts_saved(self, count: int) -> None:
        print(f"\n📝 Remembered {count} new fact(s)")

    async def _start(self) -> None:
        if self.session.event_log:
            self.session.event_log.log(
                "session_start", conversation_id=self.session.conversation_id
            )

        count = await self.session.generate_missing_summaries()
        if count:
            print(f"Summarized {count} earlier conversation(s).")

    async def _shutdown(self) -> None:
        print("\n👋 Goodbye!")
        await self.session.start_new()
        await self.session.memory.wait_for_pending()
        self.session.memory.store.close()

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        cmd = command.lower().strip()

        if cmd in ("/exit", "/quit", "exit", "quit"):
            return False

        if cmd == "/new":
            await self.session.start_new()
            print("\n✓ New conversation started.")
            return True

        if cmd == "/help":
            print(BANNER)
            return True

        print(f"Unknown command: {command}")
        return True

    async def _process_message(self, text: str) -> None:
        result = await self.session.send(text)
        print("\n" + "─" * 40)
        print(result.reply.text)
        print("─" * 40)

    async def run(self) -> None:
        """Run the interactive chat."""
        print(BANNER)
        await self._start()

        try:
            while True:
                try:
                    user_input = input("you> ").strip()
                except (KeyboardInterrupt, EOFError):
                    break

                if not user_input:
                    continue

                if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                    if not await self._handle_command(user_input):
                        break
                    continue

                await self._process_message(user_input)
        finally:
            await self._shutdown()


def _category(value: str) -> FactCategory:
    category = FactCategory.parse(value)
    if category is None:
        choices = ", ".join(c.value for c in FactCategory)
        raise argparse.ArgumentTypeError(f"unknown category '{value}' (choose from {choices})")
    return category


def _positive(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not a number") from None
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def cmd_chat(args: argparse.Namespace) -> int:
    """Start an interactive chat."""
    session = build_session(load_config(args.config))

    if args.resume and session.open(args.resume) is None:
        print(f"Error: Conversation '{args.resume}' not found.")
        return 1

    asyncio.run(ChatREPL(session).run())
    return 0


def cmd_facts_list(args: argparse.Namespace) -> int:
    """List remembered facts."""
    memory = _open_memory(load_config(args.config))
    try:
        facts = memory.facts_by_category(args.category) if args.category else memory.load_all()
    finally:
        memory.store.close()

    if not facts:
        print("No facts remembered.")
        return 0

    print(f"\n{'ID':<34} {'Category':<14} {'Conf':<5} {'Source':<7} Content")
    print("-" * 80)
    for fact in facts:
        mark = "✓ " if fact.verified else ""
        print(
            f"{fact.id:<34} {fact.category.value:<14} {fact.confidence:<5.2f} "
            f"{fact.source.value:<7} {mark}{fact.content}"
        )

    print(f"\nTotal: {len(facts)} fact(s)")
    return 0


def cmd_facts_add(args: argparse.Namespace) -> int:
    """Remember a fact."""
    content = args.content.strip()
    if not content:
        print("Error: Fact content cannot be empty.")
        return 1

    memory = _open_memory(load_config(args.config))
    try:
        fact = memory.add_fact(args.category, content)
    finally:
        memory.store.close()

    print(f"Added fact {fact.id}: {fact.category.value}: {fact.content}")
    return 0


def cmd_facts_edit(args: argparse.Namespace) -> int:
    """Edit a fact's content or category."""
    if args.content is None and args.category is None:
        print("Error: Nothing to change. Pass --content and/or --category.")
        return 1

    memory = _open_memory(load_config(args.config))
    try:
        fact = memory.update_fact(args.id, content=args.content, category=args.category)
    except ValueError as e:
        print(f"Error: {e}.")
        return 1
    finally:
        memory.store.close()

    if fact is None:
        print(f"Error: Fact '{args.id}' not found.")
        return 1

    print(f"Updated fact {fact.id}: {fact.category.value}: {fact.content}")
    return 0


def cmd_facts_verify(args: argparse.Namespace) -> int:
    """Mark a fact as confirmed."""
    memory = _open_memory(load_config(args.config))
    try:
        fact = memory.verify_fact(args.id)
    finally:
        memory.store.close()

    if fact is None:
        print(f"Error: Fact '{args.id}' not found.")
        return 1

    print(f"Verified fact {fact.id}")
    return 0


def cmd_facts_delete(args: argparse.Namespace) -> int:
    """Forget a fact."""
    memory = _open_memory(load_config(args.config))
    try:
        deleted = memory.delete_fact(args.id)
    finally:
        memory.store.close()

    if not deleted:
        print(f"Error: Fact '{args.id}' not found.")
        return 1

    print(f"Deleted fact {args.id}")
    return 0


def cmd_summarize(args: argparse.Namespace) -> int:
    """Summarize one conversation and store the result."""
    config = load_config(args.config)
    conversations = _open_conversations(config)

    conversation = conversations.get(args.id)
    if conversation is None:
        print(f"Error: Conversation '{args.id}' not found.")
        return 1

    messages = conversations.load_messages(conversation.id)
    summarizer = ChunkedSummarizer(
        _make_client(config),
        chunk_size=config.chunk_size,
        max_chunks=config.max_chunks,
        event_log=JSONLLogger(log_dir=config.log_dir),
    )

    try:
        summary = asyncio.run(summarizer.summarize(messages, conversation_id=conversation.id))
    except GenerationError as e:
        print(f"Error: Summary failed ({e.kind.value}): {e}")
        return 1

    if messages:
        conversations.update_summary(conversation.id, summary)

    print(f"\nTitle: {summary.title}")
    print(f"Summary: {summary.summary}")
    if summary.topics:
        print(f"Topics: {', '.join(summary.topics)}")
    if summary.participants:
        print(f"Participants: {', '.join(summary.participants)}")
    print(f"Messages: {summary.message_count}")
    if summary.chunk_summaries:
        print(f"Chunks: {len(summary.chunk_summaries)}")
    print(
        f"Tokens: {summary.original_token_count} -> {summary.summary_token_count} "
        f"({summary.compression_percentage}% smaller)"
    )
    return 0


def cmd_context(args: argparse.Namespace) -> int:
    """Print the prompt assembled for a conversation."""
    config = load_config(args.config)
    conversations = _open_conversations(config)

    conversation = None
    if args.id:
        conversation = conversations.get(args.id)
        if conversation is None:
            print(f"Error: Conversation '{args.id}' not found.")
            return 1

    memory = _open_memory(config)
    try:
        facts = memory.facts_for_context()
    finally:
        memory.store.close()

    context = ContextAssembler(config.budget).assemble(
        conversation,
        facts,
        conversations.load_conversation_summaries(),
        conversations.load_messages(conversation.id) if conversation else [],
    )

    print(context.full_prompt)
    print("\n" + "-" * 40)
    for name, layer in zip(LAYER_NAMES, context.layers):
        print(f"{name:<22} {estimate_tokens(layer):>5} tokens")
    print(f"{'Total':<22} {context.estimated_tokens:>5} / {config.budget.input_tokens} tokens")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Show the effective settings, or change and save them."""
    config = load_config(args.config)

    changed = False
    if args.model is not None:
        config.model = args.model
        changed = True
    if args.data_dir is not None:
        data_dir = args.data_dir.expanduser()
        if config.log_dir == config.data_dir / "logs":
            config.log_dir = data_dir / "logs"
        config.data_dir = data_dir
        changed = True
    if args.chunk_size is not None:
        config.chunk_size = args.chunk_size
        changed = True
    if args.max_chunks is not None:
        config.max_chunks = args.max_chunks
        changed = True

    if changed:
        path = args.config or DEFAULT_CONFIG_PATH
        save_config(config, path)
        print(f"Saved config to {path}")

    print(f"\nModel:       {config.model}")
    print(f"Data dir:    {config.data_dir}")
    print(f"Log dir:     {config.log_dir}")
    print(f"Chunk size:  {config.chunk_size}")
    print(f"Max chunks:  {config.max_chunks}")
    print(f"Budget:      {config.budget.total} total, {config.budget.output_reserve} reserved")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Show the extraction gate's decision for a message."""
    reason = FactGate().rejection_reason(args.text)
    if reason is None:
        print("extract: message may contain a durable fact")
    else:
        print(f"skip: {reason}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="recollect",
        description="Chat with long-term memory",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: ~/.recollect/config.json)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Sub-command help")

    # chat command
    chat_parser = subparsers.add_parser("chat", help="Start an interactive chat")
    chat_parser.add_argument("--resume", metavar="ID", help="Continue an existing conversation")

    # facts commands
    facts_parser = subparsers.add_parser("facts", help="Manage remembered facts")
    facts_sub = facts_parser.add_subparsers(dest="facts_command", help="Facts sub-command help")

    list_parser = facts_sub.add_parser("list", help="List facts")
    list_parser.add_argument("--category", type=_category, help="Only this category")

    add_parser = facts_sub.add_parser("add", help="Add a fact")
    add_parser.add_argument("category", type=_category, help="Fact category")
    add_parser.add_argument("content", help="Fact text")

    edit_parser = facts_sub.add_parser("edit", help="Edit a fact")
    edit_parser.add_argument("id", help="Fact id")
    edit_parser.add_argument("--content", help="New fact text")
    edit_parser.add_argument("--category", type=_category, help="New category")

    verify_parser = facts_sub.add_parser("verify", help="Mark a fact as confirmed")
    verify_parser.add_argument("id", help="Fact id")

    delete_parser = facts_sub.add_parser("delete", help="Delete a fact")
    delete_parser.add_argument("id", help="Fact id")

    # summarize command
    summarize_parser = subparsers.add_parser("summarize", help="Summarize a conversation")
    summarize_parser.add_argument("id", help="Conversation id")

    # context command
    context_parser = subparsers.add_parser("context", help="Show the assembled prompt")
    context_parser.add_argument("id", nargs="?", help="Conversation id (default: a new chat)")

    # check command
    check_parser = subparsers.add_parser("check", help="Check a message against the fact gate")
    check_parser.add_argument("text", help="Message text")

    # config command
    config_parser = subparsers.add_parser("config", help="Show or change settings")
    config_parser.add_argument("--model", help="Groq model name")
    config_parser.add_argument("--data-dir", type=Path, help="Where facts and chats are stored")
    config_parser.add_argument("--chunk-size", type=_positive, help="Messages per summary chunk")
    config_parser.add_argument("--max-chunks", type=_positive, help="Chunks summarized per chat")

    return parser


def run_cli(argv: list[str] | None = None) -> int:
    """Run the CLI with given arguments.

    Args:
        argv: Command-line arguments. Uses sys.argv[1:] if None.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "facts":
        facts_commands = {
            "list": cmd_facts_list,
            "add": cmd_facts_add,
            "edit": cmd_facts_edit,
            "verify": cmd_facts_verify,
            "delete": cmd_facts_delete,
        }
        handler = facts_commands.get(args.facts_command)
        if handler is None:
            print(f"usage: recollect facts {{{','.join(facts_commands)}}} ...")
            return 1
        return handler(args)

    commands = {
        "chat": cmd_chat,
        "summarize": cmd_summarize,
        "context": cmd_context,
        "check": cmd_check,
        "config": cmd_config,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)


if __name__ == "__main__":
    sys.exit(run_cli())
