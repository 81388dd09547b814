from __future__ import annotations

import argparse
import asyncio
import json
import shlex
import signal
import sys
from pathlib import Path
from typing import Any, Dict

from ..crypto.alg_registry import default_registry, load_registry
from ..crypto.keycatalog import load_key_catalog
from ..crypto.keygen import generate_dev_keys
from ..errors import ConfigError, SuiteAbort
from ..obs.prom import prometheus_latest
from ..utils.logging import get_logger
from .adapter import HttpSignerAdapter, ReferenceSignerAdapter, SubprocessSignerAdapter
from .config import SuiteConfig, load_suite_config
from .matrix import MatrixOptions
from .orchestrator import CaseMatrixOrchestrator

log = get_logger("cli")


def _suite_config(args: argparse.Namespace) -> SuiteConfig:
    overrides: Dict[str, Any] = {
        "signer_command": getattr(args, "signer_cmd", None),
        "signer_url": getattr(args, "signer_url", None),
        "keys_manifest": args.keys,
        "registry_file": args.registry,
        "vectors_dir": getattr(args, "vectors_dir", None),
        "concurrency": getattr(args, "concurrency", None),
        "signer_timeout_sec": getattr(args, "timeout", None),
    }
    return load_suite_config(args.config, overrides=overrides)


def _orchestrator(cfg: SuiteConfig, reference: bool = False) -> CaseMatrixOrchestrator:
    registry = load_registry(cfg.registry_file) if cfg.registry_file else default_registry()
    catalog = load_key_catalog(cfg.keys_manifest)
    vectors_dir = cfg.vectors_dir or None
    if reference:
        adapter = ReferenceSignerAdapter(registry=registry, vectors_dir=vectors_dir, timeout=cfg.signer_timeout_sec)
    elif cfg.signer_url:
        adapter = HttpSignerAdapter(cfg.signer_url, timeout=cfg.signer_timeout_sec, vectors_dir=vectors_dir,
                                    header_delimiter=cfg.header_delimiter)
    elif cfg.signer_command:
        adapter = SubprocessSignerAdapter(shlex.split(cfg.signer_command), timeout=cfg.signer_timeout_sec,
                                          vectors_dir=vectors_dir, header_delimiter=cfg.header_delimiter)
    else:
        raise ConfigError("no signer configured: pass --signer-cmd, --signer-url or --reference")
    options = MatrixOptions(
        baseline_scheme=cfg.baseline_scheme,
        baseline_key_type=cfg.baseline_key_type,
        deprecated_probe_key_type=cfg.deprecated_probe_key_type,
        key_id=cfg.key_id,
        include_incompatible=cfg.include_incompatible,
        skew_seconds=cfg.skew_seconds,
    )
    return CaseMatrixOrchestrator(registry, catalog, adapter, concurrency=cfg.concurrency, options=options)


async def _run_with_abort(orch: CaseMatrixOrchestrator):
    abort = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, abort.set)
    except (NotImplementedError, RuntimeError):  # pragma: no cover - non-unix loops
        pass
    try:
        return await orch.run(abort=abort)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):  # pragma: no cover
            pass


def cmd_run(args: argparse.Namespace) -> int:
    try:
        orch = _orchestrator(_suite_config(args), reference=args.reference)
        report = asyncio.run(_run_with_abort(orch))
    except SuiteAbort as e:
        log.error("conformance run aborted: %s", e)
        print(json.dumps({"ok": False, "error": str(e), "error_type": type(e).__name__}))
        return 2
    out = report.model_dump_json(indent=2)
    if args.output:
        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        Path(args.output).write_text(out, encoding="utf-8")
    if args.metrics_out:
        body, _ = prometheus_latest()
        Path(args.metrics_out).parent.mkdir(parents=True, exist_ok=True)
        Path(args.metrics_out).write_bytes(body)
    print(out)
    return 0 if report.ok else 1


def cmd_matrix(args: argparse.Namespace) -> int:
    try:
        orch = _orchestrator(_suite_config(args), reference=True)
        cases = orch.build_cases()
    except SuiteAbort as e:
        print(json.dumps({"ok": False, "error": str(e)}))
        return 2
    for c in cases:
        exp = orch.rules.expected_outcome(c.request, orch.rules.scheme_for(c.request), c.resolved_key_type, orch.now())
        print(f"{c.case_id}\t{exp.kind.value}\t{exp.rule.value if exp.rule else ''}")
    return 0


def cmd_gen_keys(args: argparse.Namespace) -> int:
    written = generate_dev_keys(args.out)
    print(json.dumps({k: str(v) for k, v in written.items()}, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser("sigconform")
    sub = p.add_subparsers(dest="cmd", required=True)

    def common(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--config", help="suite config YAML (default config/sigconform.yml if present)")
        sp.add_argument("--keys", help="key manifest (YAML/JSON)")
        sp.add_argument("--registry", help="algorithm registry source (YAML/JSON)")

    p_run = sub.add_parser("run", help="run the conformance matrix against a signer")
    common(p_run)
    p_run.add_argument("--signer-cmd", dest="signer_cmd", help="signer command line, invoked as '<cmd> sign ...'")
    p_run.add_argument("--signer-url", dest="signer_url", help="base URL of an HTTP signer")
    p_run.add_argument("--reference", action="store_true", help="use the bundled reference signer")
    p_run.add_argument("--vectors-dir", dest="vectors_dir")
    p_run.add_argument("--concurrency", type=int)
    p_run.add_argument("--timeout", type=float)
    p_run.add_argument("--output", help="also write the JSON report here")
    p_run.add_argument("--metrics-out", dest="metrics_out", help="write Prometheus text exposition of the run here")
    p_run.set_defaults(func=cmd_run)

    p_mat = sub.add_parser("matrix", help="print planned case ids and expected outcomes")
    common(p_mat)
    p_mat.set_defaults(func=cmd_matrix)

    p_keys = sub.add_parser("gen-keys", help="write DEV-ONLY keys and a keys.yml manifest")
    p_keys.add_argument("--out", default="keys")
    p_keys.set_defaults(func=cmd_gen_keys)

    args = p.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
