"""Data-parallel SSIM matching on a torch device.

The torch matcher computes exactly the same SSIM as ``asciicells.ssim``
(same constants, population variance), so the two are interchangeable.
torch is optional: when it is missing or no accelerator is present the
CPU matcher is used instead.
"""

import logging
from dataclasses import dataclass

import numpy as np

from asciicells.engine import StructureMatcher
from asciicells.glyph_atlas import TemplateSet
from asciicells.ssim import C1, C2, CpuSsimMatcher, check_dimensions

logger = logging.getLogger(__name__)

# Cells uploaded per dispatch
BATCH_CELLS = 4096


@dataclass
class GpuDiagnostics:
    has_compute_api: bool = False
    has_adapter: bool = False
    has_device: bool = False
    adapter_description: str | None = None
    failure_reason: str | None = None
    device: str | None = None

    def as_report(self) -> dict:
        """Diagnostic report for display, with optional keys omitted when unset."""
        report = {
            "hasComputeAPI": self.has_compute_api,
            "hasAdapter": self.has_adapter,
            "hasDevice": self.has_device,
        }
        if self.adapter_description is not None:
            report["adapterDescription"] = self.adapter_description
        if self.failure_reason is not None:
            report["failureReason"] = self.failure_reason
        return report


def _accelerator(torch) -> str | None:
    if torch.cuda.is_available():
        return "cuda"
    mps = getattr(torch.backends, "mps", None)
    if mps is not None and mps.is_available():
        return "mps"
    return None


def _describe(torch, device: str) -> str:
    kind = torch.device(device).type
    if kind == "cuda":
        return torch.cuda.get_device_name(torch.device(device).index or 0)
    if kind == "mps":
        return "Apple Metal (MPS)"
    return kind


def probe(device: str | None = None) -> GpuDiagnostics:
    """Report whether torch, an accelerator and a usable device are present.

    ``device`` forces a specific torch device (e.g. ``"cuda:1"`` or ``"cpu"``);
    by default CUDA is preferred, then MPS.
    """
    diagnostics = GpuDiagnostics()
    try:
        import torch
    except ImportError as e:
        diagnostics.failure_reason = f"torch is not installed ({e})"
        return diagnostics
    diagnostics.has_compute_api = True

    name = device if device is not None else _accelerator(torch)
    if name is None:
        diagnostics.failure_reason = "No CUDA or MPS device available"
        return diagnostics

    try:
        diagnostics.adapter_description = _describe(torch, name)
        diagnostics.has_adapter = True
        torch.zeros(1, device=name)
    except (RuntimeError, AssertionError) as e:
        diagnostics.failure_reason = f"Failed to create {name} device: {e}"
        return diagnostics

    diagnostics.has_device = True
    diagnostics.device = name
    return diagnostics


class TorchSsimMatcher:
    """Batch SSIM matcher on a torch device.

    The template set is uploaded once per template generation and shared by
    every batch. Cell samples are uploaded per batch and released afterwards.
    Instances own their device context and should not be shared between
    worker processes.
    """

    name = "torch"

    def __init__(self, device: str, batch_size: int = BATCH_CELLS):
        import torch

        self._torch = torch
        self.device = torch.device(device)
        self.batch_size = batch_size
        self._generation: int | None = None
        self._uploaded = None

    def _upload(self, templates: TemplateSet):
        if self._generation == templates.generation:
            return self._uploaded
        torch = self._torch
        self.close()
        n = templates.pixels_per_cell
        t = torch.tensor(np.array(templates.rasters, dtype=np.float32), device=self.device)
        mu_t = t.mean(dim=1)
        dt = t - mu_t[:, None]
        var_t = (dt * dt).sum(dim=1) / n
        self._uploaded = (dt, mu_t, var_t)
        self._generation = templates.generation
        logger.debug("Uploaded %d templates to %s", len(templates), self.device)
        return self._uploaded

    def match(self, cells: np.ndarray, templates: TemplateSet) -> np.ndarray:
        cells = np.asarray(cells, dtype=np.float32)
        check_dimensions(cells, templates)
        torch = self._torch
        dt, mu_t, var_t = self._upload(templates)
        n = templates.pixels_per_cell

        result = np.empty(len(cells), dtype=np.intp)
        with torch.no_grad():
            for start in range(0, len(cells), self.batch_size):
                stop = start + self.batch_size
                batch = torch.tensor(cells[start:stop], device=self.device)
                mu_c = batch.mean(dim=1)
                dc = batch - mu_c[:, None]
                var_c = (dc * dc).sum(dim=1) / n
                cov = (dc @ dt.T) / n

                numerator = (2 * mu_c[:, None] * mu_t[None, :] + C1) * (2 * cov + C2)
                denominator = (mu_c[:, None] ** 2 + mu_t[None, :] ** 2 + C1) * (var_c[:, None] + var_t[None, :] + C2)
                best = torch.argmax(numerator / denominator, dim=1)

                # .cpu() waits for the dispatch to finish
                result[start:stop] = best.cpu().numpy()
                del batch, dc, cov, numerator, denominator, best
        return result

    def close(self) -> None:
        self._uploaded = None
        self._generation = None


def select_matcher(prefer_gpu: bool = True, device: str | None = None) -> StructureMatcher:
    """Pick the torch matcher when a device is usable, the CPU matcher otherwise."""
    if not prefer_gpu:
        return CpuSsimMatcher()
    diagnostics = probe(device)
    if not diagnostics.has_device:
        logger.info("GPU matching unavailable (%s), using CPU", diagnostics.failure_reason)
        return CpuSsimMatcher()
    try:
        matcher = TorchSsimMatcher(diagnostics.device)
    except RuntimeError as e:
        logger.warning("GPU matcher init failed, using CPU: %s", e)
        return CpuSsimMatcher()
    logger.debug("Using torch matcher on %s (%s)", diagnostics.device, diagnostics.adapter_description)
    return matcher


def match_with_fallback(
    matcher: StructureMatcher,
    cells: np.ndarray,
    templates: TemplateSet,
    fallback: StructureMatcher | None = None,
) -> np.ndarray:
    """Run ``matcher``, falling back to the CPU matcher if an accelerated one fails.

    Failures of the CPU matcher itself propagate.
    """
    if isinstance(matcher, CpuSsimMatcher):
        return matcher.match(cells, templates)
    try:
        return matcher.match(cells, templates)
    except RuntimeError as e:
        logger.warning("%s matcher failed, falling back to CPU: %s", matcher.name, e)
        return (fallback or CpuSsimMatcher()).match(cells, templates)
