from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .compiler import DEFAULT_COMPILER, compile_source
from .errors import RECONNECT_ADVICE, HostLinkError, ProtocolError, ReadTimeout
from .link import DEFAULT_BAUD
from .session import Session


def _session(args: argparse.Namespace) -> Session:
    return Session(
        args.port,
        args.baud,
        compiler=lambda source: compile_source(source, compiler=args.compiler),
    )


def cmd_sync(args: argparse.Namespace) -> int:
    session = _session(args)
    try:
        session.connect(noreset=args.noreset)
    finally:
        session.close()
    return 0


def cmd_eval(args: argparse.Namespace) -> int:
    session = _session(args)
    try:
        session.connect(noreset=args.noreset)
        status = 0
        for path in args.files:
            if session.remote_eval(Path(path).read_text(encoding="utf-8"), verbose=args.verbose) is None:
                status = 1
        return status
    finally:
        session.close()


def cmd_run(args: argparse.Namespace) -> int:
    session = _session(args)
    try:
        session.connect(noreset=args.noreset)
        result = session.eval_blob(Path(args.blob).read_bytes(), verbose=args.verbose)
    finally:
        session.close()
    prefix = "   " if result.is_exception else " => "
    print(prefix + result.text.rstrip("\n"))
    return 1 if result.is_exception else 0


def cmd_view(args: argparse.Namespace) -> int:
    session = _session(args)
    try:
        session.connect(noreset=args.noreset)
        session.enter_view_mode()
    finally:
        session.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="hostlink", description="Evaluate mruby bytecode on a serial target.")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--port", required=True, help="serial device, e.g. /dev/ttyACM0")
        x.add_argument("--baud", type=int, default=DEFAULT_BAUD)
        x.add_argument("--noreset", action="store_true", help="skip the handshake and keep target state")
        x.add_argument("--compiler", default=DEFAULT_COMPILER)
        x.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    sync = sub.add_parser("sync", help="open the port and wait for the target")
    add_common(sync)
    sync.set_defaults(func=cmd_sync)

    ev = sub.add_parser("eval", help="compile and evaluate source files")
    add_common(ev)
    ev.add_argument("--verbose", action="store_true")
    ev.add_argument("files", nargs="+")
    ev.set_defaults(func=cmd_eval)

    run = sub.add_parser("run", help="evaluate a precompiled .mrb blob")
    add_common(run)
    run.add_argument("--verbose", action="store_true")
    run.add_argument("blob")
    run.set_defaults(func=cmd_run)

    view = sub.add_parser("view", help="print target output until Ctrl-C")
    add_common(view)
    view.set_defaults(func=cmd_view)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except HostLinkError as e:
        logging.error("%s", e)
        if isinstance(e, (ProtocolError, ReadTimeout)):
            print(RECONNECT_ADVICE)
        return 1
    except OSError as e:
        logging.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
