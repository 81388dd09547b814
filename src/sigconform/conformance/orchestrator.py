"""Drives the signer under test through the case matrix.

Per case: Built -> Dispatched -> {Signed, Rejected} -> Verdicted. The
expected outcome is fixed from the request's static attributes before the
adapter is called; the observed outcome is then judged against it.

Cases run on an asyncio worker pool bounded by ``concurrency``. Each verdict
lands in its own slot keyed by case id, so completed verdicts survive an
abort. Infrastructural failures (``SuiteAbort``) cancel the remaining cases
and propagate; rule violations never do.
"""
from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, List, Optional, Sequence

from ..crypto.alg_registry import AlgorithmRegistry
from ..crypto.keycatalog import KeyCatalog
from ..obs.prom import CASES_INFLIGHT, observe_verdict
from ..utils.logging import get_logger
from .adapter import SignerAdapter
from .matrix import MatrixOptions, build_case_matrix
from .models import Case, CaseState, ConformanceVerdict, Signed, SuiteReport
from .rules import ConformanceRules

log = get_logger("orchestrator")


class CaseMatrixOrchestrator:
    def __init__(
        self,
        registry: AlgorithmRegistry,
        catalog: KeyCatalog,
        adapter: SignerAdapter,
        rules: Optional[ConformanceRules] = None,
        concurrency: int = 4,
        clock: Callable[[], float] = time.time,
        options: Optional[MatrixOptions] = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.registry = registry
        self.catalog = catalog
        self.adapter = adapter
        self.rules = rules or ConformanceRules(registry)
        self.concurrency = concurrency
        self.clock = clock
        self.options = options or MatrixOptions()
        self.completed: Dict[str, ConformanceVerdict] = {}

    def now(self) -> int:
        return int(self.clock())

    def build_cases(self) -> List[Case]:
        return build_case_matrix(self.registry, self.catalog, self.now(), self.options)

    async def run_case(self, case: Case) -> ConformanceVerdict:
        req = case.request
        scheme = self.rules.scheme_for(req)
        expectation = self.rules.expected_outcome(req, scheme, case.resolved_key_type, self.now())

        case.advance(CaseState.DISPATCHED)
        log.debug("dispatch %s alg=%s key-type=%s", case.case_id, req.algorithm, req.key_type)
        start = time.monotonic()
        CASES_INFLIGHT.inc()
        try:
            outcome = await self.adapter.generate(req.target_vector, req)
        finally:
            CASES_INFLIGHT.dec()
        elapsed_ms = (time.monotonic() - start) * 1000.0
        case.advance(CaseState.SIGNED if isinstance(outcome, Signed) else CaseState.REJECTED)

        frag = self.rules.judge(req, expectation, outcome)
        verdict = ConformanceVerdict(
            case_id=case.case_id,
            expected=frag.expected,
            observed=outcome,
            passed=frag.passed,
            violated_rule=frag.violated_rule,
            expected_rule=expectation.rule,
            elapsed_ms=elapsed_ms,
        )
        case.advance(CaseState.VERDICTED)
        rule = frag.violated_rule.value if frag.violated_rule else None
        observe_verdict(passed=frag.passed, rule=rule)
        if not frag.passed:
            log.warning("case %s failed: expected %s, observed %s (%s)",
                        case.case_id, frag.expected.value, outcome.kind.value, rule)
        return verdict

    async def run(self, cases: Optional[Sequence[Case]] = None,
                  abort: Optional[asyncio.Event] = None) -> SuiteReport:
        """Run every case; returns the report ordered by case id.

        Setting ``abort`` cancels in-flight cases and returns a report of the
        verdicts completed so far, marked ``aborted``.
        """
        cases = list(cases) if cases is not None else self.build_cases()
        ids = [c.case_id for c in cases]
        if len(set(ids)) != len(ids):
            raise ValueError("case ids must be unique")
        self.completed = {}
        sem = asyncio.Semaphore(self.concurrency)

        async def worker(case: Case) -> None:
            async with sem:
                self.completed[case.case_id] = await self.run_case(case)

        tasks = [asyncio.create_task(worker(c), name=c.case_id) for c in cases]
        all_done = asyncio.gather(*tasks)
        waiter = asyncio.create_task(abort.wait()) if abort is not None else None
        aborted = False
        try:
            if waiter is None:
                await all_done
            else:
                done, _ = await asyncio.wait({all_done, waiter}, return_when=asyncio.FIRST_COMPLETED)
                if all_done in done:
                    all_done.result()
                else:
                    aborted = True
                    log.warning("abort requested; cancelling %d pending cases",
                                sum(1 for t in tasks if not t.done()))
                    await self._cancel(all_done, tasks)
        except BaseException:
            await self._cancel(all_done, tasks)
            raise
        finally:
            if waiter is not None:
                waiter.cancel()

        report = SuiteReport.from_verdicts(self.completed.values(), planned=len(cases), aborted=aborted)
        log.info("conformance run: %d/%d passed, %d failed%s", report.passed, report.total, report.failed,
                 " (aborted)" if aborted else "")
        return report

    @staticmethod
    async def _cancel(all_done: asyncio.Future, tasks: Sequence[asyncio.Task]) -> None:
        all_done.cancel()
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def run_sync(self, cases: Optional[Sequence[Case]] = None) -> SuiteReport:
        return asyncio.run(self.run(cases))


__all__ = ["CaseMatrixOrchestrator"]
