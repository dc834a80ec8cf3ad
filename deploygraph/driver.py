"""
Deployment driver.

Drives the units of a DeploymentGraph through their lifecycle, one at a
time, in topological order:

    DECLARED -> INPUTS_RESOLVING -> PROVISIONING -> OUTPUTS_PUBLISHED
                       |                 |
                       +----> FAILED <---+

Two entry points:
- plan(): Pure - reads the fact store, reports what each unit would read
- run(): Impure - resolves, provisions and publishes; halts on first failure

A unit's inputs are only resolved after every unit before it in the order
has published its outputs. Outputs are checked against the unit's
declaration before any of them is published, so a unit that fails before
publishing leaves no facts behind. Publishing is not transactional: if the
store fails midway, the keys already written are kept on the unit record
and in the log entry of the failure. Units that already published keep
their facts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from rich.console import Console

from .audit import log_transition
from .config import DeploymentConfig
from .errors import (
    FactError,
    FactNotFound,
    InvalidOutputs,
    ProvisioningRejected,
    TypeMismatch,
    UnitFailed,
    UnknownUnit,
)
from .facts import DeferredFact, FactReader, FactStore, FactValue, kind_of
from .graph import DeploymentGraph
from .provider import Provider, ProviderError
from .secrets import SecretManager
from .units.base import ProvisionContext, Unit, UnitState
from .util import new_ulid

InputStatus = Literal["resolved", "pending", "missing", "mismatch"]


# -----------------------------------------------------------------------------
# Plan
# -----------------------------------------------------------------------------


@dataclass
class InputPlan:
    """How one declared read would resolve."""

    name: str
    key: str
    mode: str
    status: InputStatus
    producer: str | None = None
    detail: str = ""


@dataclass
class UnitPlan:
    unit_id: str
    stack_name: str
    inputs: list[InputPlan] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)  # fact keys
    resources: list[str] = field(default_factory=list)

    @property
    def blocked(self) -> list[InputPlan]:
        return [i for i in self.inputs if i.status in ("missing", "mismatch")]


@dataclass
class DeploymentPlan:
    """Result of Deployer.plan()."""

    environment: str
    units: list[UnitPlan] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)

    @property
    def order(self) -> list[str]:
        return [u.unit_id for u in self.units]

    @property
    def ready(self) -> bool:
        """True when every read is already published or produced earlier in the run."""
        return not any(u.blocked for u in self.units)


# -----------------------------------------------------------------------------
# Run report
# -----------------------------------------------------------------------------


@dataclass
class UnitRecord:
    unit_id: str
    state: UnitState = UnitState.DECLARED
    step: str | None = None  # step that failed
    error: str | None = None
    published: list[str] = field(default_factory=list)  # fact keys


@dataclass
class RunReport:
    """Outcome of Deployer.run(); kept on the deployer even when the run fails."""

    run_id: str
    records: dict[str, UnitRecord] = field(default_factory=dict)  # in deployment order
    failure: UnitFailed | None = None

    @property
    def success(self) -> bool:
        return self.failure is None

    @property
    def deployed(self) -> list[str]:
        return [r.unit_id for r in self.records.values() if r.state == UnitState.OUTPUTS_PUBLISHED]

    @property
    def not_started(self) -> list[str]:
        return [r.unit_id for r in self.records.values() if r.state == UnitState.DECLARED]


class Deployer:
    """
    Sequential deployment driver.

    The fact store, provider and secret manager are injected; nothing is
    looked up from global state.
    """

    def __init__(
        self,
        graph: DeploymentGraph,
        store: FactStore,
        provider: Provider,
        secrets: SecretManager,
        config: DeploymentConfig,
        *,
        console: Console | None = None,
        log_path: Path | None = None,
    ):
        self.graph = graph
        self.store = store
        self.reader = FactReader(store)
        self.provider = provider
        self.secrets = secrets
        self.config = config
        self.console = console or Console(stderr=True)
        self.log_path = log_path
        self.last_report: RunReport | None = None

    # -------------------------------------------------------------------------
    # Target selection
    # -------------------------------------------------------------------------

    def select(self, targets: list[str] | None = None, exclusively: bool = False) -> list[str]:
        """
        Unit ids a run covers, in deployment order.

        Without targets every unit is selected. With targets, their
        dependencies are pulled in unless `exclusively` is set; then only
        the targets run and their producers are assumed already deployed.
        """
        order = self.graph.topological_order()
        if not targets:
            return order

        unknown = [t for t in targets if t not in self.graph.nodes]
        if unknown:
            raise UnknownUnit(f"unknown unit(s): {', '.join(unknown)} (known: {', '.join(order)})")

        selected = set(targets)
        if not exclusively:
            for target in targets:
                selected |= self.graph.transitive_dependencies(target)
        return [unit_id for unit_id in order if unit_id in selected]

    # -------------------------------------------------------------------------
    # plan(): Pure phase
    # -------------------------------------------------------------------------

    def plan(self, targets: list[str] | None = None, exclusively: bool = False) -> DeploymentPlan:
        """
        Report how every selected unit's inputs would resolve. Only reads.

        Raises:
            UnknownUnit: a target is not in the graph
            StoreUnavailable: the fact store cannot be read
        """
        selected = self.select(targets, exclusively)
        in_run = set(selected)
        result = DeploymentPlan(environment=self.config.environment)

        for unit_id in selected:
            unit = self.graph.nodes[unit_id]
            unit_plan = UnitPlan(
                unit_id=unit_id,
                stack_name=unit.stack_name,
                outputs=[o.key for o in unit.declare_outputs()],
                resources=unit.describe(),
            )
            for read in unit.declare_inputs():
                producer = self.graph.producer_of(read.key)
                status: InputStatus
                detail = ""
                if producer in in_run:
                    status = "pending"
                else:
                    try:
                        self.reader.resolve_eager(read.key, read.kind)
                        status = "resolved"
                    except TypeMismatch as e:
                        status = "mismatch"
                        detail = str(e)
                    except FactNotFound:
                        status = "missing"
                unit_plan.inputs.append(
                    InputPlan(read.name, read.key, read.mode, status, producer=producer, detail=detail)
                )
            result.units.append(unit_plan)

        return result

    # -------------------------------------------------------------------------
    # run(): Impure phase
    # -------------------------------------------------------------------------

    def run(self, targets: list[str] | None = None, exclusively: bool = False) -> RunReport:
        """
        Deploy the selected units in order.

        Returns:
            RunReport with every unit OUTPUTS_PUBLISHED

        Raises:
            UnitFailed: the first unit that failed; later units stay DECLARED.
                The partial report is available as `last_report`.
        """
        selected = self.select(targets, exclusively)
        report = RunReport(run_id=new_ulid())
        report.records = {unit_id: UnitRecord(unit_id) for unit_id in selected}
        self.last_report = report

        self.console.print(
            f"Deploying {len(selected)} unit(s) to {self.config.prefix} (run {report.run_id})",
            style="dim",
        )
        self._log(report.run_id, "", "run_started", "running", {"units": selected, "config": self.config.to_dict()})

        for unit_id in selected:
            unit = self.graph.nodes[unit_id]
            try:
                self._deploy_unit(unit, report.records[unit_id], report.run_id)
            except UnitFailed as e:
                report.failure = e
                self.console.print(f"{unit.stack_name}: failed during {e.step}: {e.cause}", style="red", markup=False)
                self._log(report.run_id, "", "run_finished", "failed", {"failed_unit": unit_id})
                raise

        self._log(report.run_id, "", "run_finished", "succeeded", {"deployed": report.deployed})
        return report

    def _deploy_unit(self, unit: Unit, record: UnitRecord, run_id: str) -> None:
        # Step 1: resolve inputs (deferred reads stay tokens)
        self._transition(unit, record, run_id, "resolve_inputs", UnitState.INPUTS_RESOLVING)
        resolved: dict[str, FactValue | DeferredFact] = {}
        try:
            for read in unit.declare_inputs():
                resolved[read.name] = self.reader.resolve(read)
        except FactError as e:
            self._fail(unit, record, run_id, "inputs_resolving", e)

        # Step 2: provision (deferred reads are resolved at apply time)
        self._transition(unit, record, run_id, "provision", UnitState.PROVISIONING)
        try:
            inputs = {
                name: value.resolve() if isinstance(value, DeferredFact) else value
                for name, value in resolved.items()
            }
            context = ProvisionContext(
                unit_id=unit.unit_id,
                config=self.config,
                provider=self.provider,
                secrets=self.secrets,
                inputs=inputs,
            )
            outputs = unit.provision(context)
            self._validate_outputs(unit, outputs)
        except ProviderError as e:
            rejected = ProvisioningRejected(str(e))
            rejected.__cause__ = e
            self._fail(unit, record, run_id, "provisioning", rejected)
        except Exception as e:
            self._fail(unit, record, run_id, "provisioning", e)

        # Step 3: publish
        try:
            for output in unit.declare_outputs():
                self.store.publish(output.key, outputs[output.name])
                record.published.append(output.key)
        except FactError as e:
            self._fail(unit, record, run_id, "publishing", e)

        self._transition(
            unit, record, run_id, "publish", UnitState.OUTPUTS_PUBLISHED, {"facts": list(record.published)}
        )

    @staticmethod
    def _validate_outputs(unit: Unit, outputs: dict[str, FactValue]) -> None:
        declared = {o.name: o for o in unit.declare_outputs()}
        missing = sorted(set(declared) - set(outputs))
        extra = sorted(set(outputs) - set(declared))
        if missing or extra:
            raise InvalidOutputs(
                f"{unit.unit_id} returned outputs not matching its declaration "
                f"(missing: {missing or '-'}, undeclared: {extra or '-'})"
            )
        for name, output in declared.items():
            try:
                kind = kind_of(outputs[name])
            except TypeError as e:
                raise InvalidOutputs(f"{unit.unit_id} output '{name}': {e}") from e
            if kind != output.kind:
                raise TypeMismatch(output.key, expected=output.kind, actual=kind)

    # -------------------------------------------------------------------------
    # Bookkeeping
    # -------------------------------------------------------------------------

    def _transition(
        self,
        unit: Unit,
        record: UnitRecord,
        run_id: str,
        step: str,
        state: UnitState,
        metadata: dict | None = None,
    ) -> None:
        record.state = state
        self.console.print(f"{unit.stack_name}: {state.value}", style="dim")
        self._log(run_id, unit.unit_id, step, state.value, metadata)

    def _fail(self, unit: Unit, record: UnitRecord, run_id: str, step: str, cause: Exception) -> None:
        record.state = UnitState.FAILED
        record.step = step
        record.error = str(cause)
        self._log(
            run_id,
            unit.unit_id,
            step,
            UnitState.FAILED.value,
            {"error": str(cause), "error_type": type(cause).__name__, "published": list(record.published)},
        )
        raise UnitFailed(unit.unit_id, step, cause) from cause

    def _log(self, run_id: str, unit_id: str, step: str, state: str, metadata: dict | None = None) -> None:
        if self.log_path is not None:
            log_transition(self.log_path, run_id, unit_id, step, state, metadata)
