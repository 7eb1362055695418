"""Submission of long-running vSphere tasks and waiting for their outcome."""

from __future__ import annotations

import time
from typing import Callable

from pyVmomi import vim, vmodl

from vmdriver.constants import TASK_POLL_INTERVAL, TASK_POLL_MAX_INTERVAL
from vmdriver.context import Context
from vmdriver.exceptions import RemoteTaskFailure
from vmdriver.utils import log


class TaskExecutor:
    """Single chokepoint for every mutating remote call.

    ``execute`` submits, waits for a terminal state and either returns the
    task result or raises ``RemoteTaskFailure`` with the endpoint's fault.
    Nothing is retried.
    """

    def __init__(
        self,
        context: Context,
        poll_interval: float = TASK_POLL_INTERVAL,
        max_interval: float = TASK_POLL_MAX_INTERVAL,
    ) -> None:
        self.context = context
        self.poll_interval = poll_interval
        self.max_interval = max_interval

    def submit(self, submit: Callable[[], vim.Task], description: str) -> vim.Task:
        self.context.check()
        try:
            return submit()
        except vmodl.MethodFault as exc:
            log("DEBUG", f"{description}: endpoint rejected the request: {exc.msg}")
            raise RemoteTaskFailure(description, exc) from exc

    def wait(self, task: vim.Task, description: str):
        interval = self.poll_interval
        start = time.monotonic()
        while True:
            try:
                info = task.info
            except vmodl.MethodFault as exc:
                log("DEBUG", f"{description}: reading task state failed: {exc.msg}")
                raise RemoteTaskFailure(description, exc) from exc
            if info.state == vim.TaskInfo.State.success:
                log("DEBUG", f"{description}: completed in {time.monotonic() - start:.1f}s")
                return info.result
            if info.state == vim.TaskInfo.State.error:
                log("DEBUG", f"{description}: task failed: {getattr(info.error, 'msg', info.error)}")
                raise RemoteTaskFailure(description, info.error)
            log("DEBUG", f"{description}: task {info.state}, next check in {interval:.1f}s")
            self.context.wait(interval)
            interval = min(interval * 2, self.max_interval)

    def execute(self, submit: Callable[[], vim.Task], description: str):
        task = self.submit(submit, description)
        return self.wait(task, description)

    def execute_vm(self, submit: Callable[[], vim.Task], description: str, factory: Callable):
        """Run a create/clone task and pass the new VM reference to ``factory``."""
        result = self.execute(submit, description)
        if not isinstance(result, vim.VirtualMachine):
            raise RemoteTaskFailure(description, f"task result is not a virtual machine: {result!r}")
        return factory(result)
