"""Moré-Thuente line search with safeguarded cubic/quadratic step selection.

The search keeps a bracket ``[stx, sty]`` of trial steps with known values and
directional derivatives and proposes new trial steps by safeguarded
polynomial interpolation until the strong Wolfe conditions hold.

The control flow is split into pure functions: ``start`` validates the
initial direction, ``step`` consumes one ``TrialObservation`` and returns the
next trial step, the updated ``BracketState`` and a ``TerminationCode`` once
the search is finished. ``MoreThuenteLineSearch`` drives them over a
one-dimensional function.
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Callable, NamedTuple, Optional, Tuple

from .line_search import LineSearchResult


class TerminationCode(IntEnum):
    """Reasons for the line search to stop."""

    DESCENT_VIOLATED = -1
    CONVERGED = 1
    BRACKET_COLLAPSED = 2
    MAX_EVALUATIONS = 3
    MIN_STEP = 4
    MAX_STEP = 5
    STALLED = 6

    @property
    def success(self) -> bool:
        return self in (TerminationCode.CONVERGED, TerminationCode.MAX_STEP)

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    TerminationCode.DESCENT_VIOLATED: "Search direction is not a descent direction",
    TerminationCode.CONVERGED: "Sufficient decrease and curvature conditions hold",
    TerminationCode.BRACKET_COLLAPSED: "Relative width of the bracket is below xtol",
    TerminationCode.MAX_EVALUATIONS: "Number of function evaluations reached maxfev",
    TerminationCode.MIN_STEP: "Step is at the lower bound stpmin",
    TerminationCode.MAX_STEP: "Step is at the upper bound stpmax",
    TerminationCode.STALLED: "Rounding errors prevent further progress",
}


@dataclass(frozen=True)
class LineSearchParameters:
    """Safeguard constants of the search."""

    ftol: float = 1e-4
    gtol: float = 1e-2
    xtol: float = 1e-15
    stpmin: float = 1e-15
    stpmax: float = 1e15
    xtrapf: float = 4.0
    maxfev: int = 20


DEFAULT_PARAMETERS = LineSearchParameters()


class TrialObservation(NamedTuple):
    """Function value and directional derivative at trial step ``stp``."""

    stp: float
    f: float
    dg: float


@dataclass(frozen=True)
class BracketState:
    """Bracket bookkeeping between two trial evaluations."""

    finit: float
    dginit: float
    dgtest: float
    stx: float
    fx: float
    dx: float
    sty: float
    fy: float
    dy: float
    brackt: bool = False
    stage1: bool = True
    stmin: float = 0.0
    stmax: float = 0.0
    width: float = 0.0
    width1: float = 0.0
    nfev: int = 0
    infoc: int = 1


class StepUpdate(NamedTuple):
    """Result of ``safeguarded_step``."""

    stx: float
    fx: float
    dx: float
    sty: float
    fy: float
    dy: float
    stp: float
    brackt: bool
    info: int


def _cubic_scale(theta: float, d1: float, d2: float) -> float:
    return max(abs(theta), abs(d1), abs(d2))


def safeguarded_step(
    stx: float, fx: float, dx: float,
    sty: float, fy: float, dy: float,
    stp: float, fp: float, dp: float,
    brackt: bool, stpmin: float, stpmax: float,
) -> StepUpdate:
    """Compute a safeguarded step and update the bracket.

    ``(stx, fx, dx)`` is the endpoint with the least function value,
    ``(sty, fy, dy)`` the other endpoint and ``(stp, fp, dp)`` the current
    trial.

    Returns:
        Updated endpoints, the new trial step, the bracket flag and ``info``
        (1-4 for the case that was used, 0 on invalid input or when the
        interpolation is degenerate, in which case the input is returned)
    """
    unchanged = StepUpdate(stx, fx, dx, sty, fy, dy, stp, brackt, 0)

    if ((brackt and (stp <= min(stx, sty) or stp >= max(stx, sty)))
            or dx * (stp - stx) >= 0.0 or stpmax < stpmin):
        return unchanged

    sgnd = dp * math.copysign(1.0, dx) if dx != 0.0 else 0.0

    try:
        if fp > fx:
            # higher function value, the minimum is bracketed
            info = 1
            bound = True

            theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
            s = _cubic_scale(theta, dx, dp)
            gamma = s * math.sqrt((theta / s) ** 2 - (dx / s) * (dp / s))

            if stp < stx:
                gamma = -gamma

            p = (gamma - dx) + theta
            q = ((gamma - dx) + gamma) + dp
            r = p / q

            stpc = stx + r * (stp - stx)
            stpq = stx + ((dx / ((fx - fp) / (stp - stx) + dx)) / 2.0) * (stp - stx)

            if abs(stpc - stx) < abs(stpq - stx):
                stpf = stpc
            else:
                stpf = stpc + (stpq - stpc) / 2.0

            brackt = True
        elif sgnd < 0.0:
            # derivatives have opposite sign, the minimum is bracketed
            info = 2
            bound = False

            theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
            s = _cubic_scale(theta, dx, dp)
            gamma = s * math.sqrt((theta / s) ** 2 - (dx / s) * (dp / s))

            if stp > stx:
                gamma = -gamma

            p = (gamma - dp) + theta
            q = ((gamma - dp) + gamma) + dx
            r = p / q

            stpc = stp + r * (stx - stp)
            stpq = stp + (dp / (dp - dx)) * (stx - stp)

            if abs(stpc - stp) > abs(stpq - stp):
                stpf = stpc
            else:
                stpf = stpq

            brackt = True
        elif abs(dp) < abs(dx):
            # derivative decreases in magnitude
            info = 3
            bound = True

            theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
            s = _cubic_scale(theta, dx, dp)
            gamma = s * math.sqrt(max(0.0, (theta / s) ** 2 - (dx / s) * (dp / s)))

            if stp > stx:
                gamma = -gamma

            p = (gamma - dp) + theta
            q = (gamma + (dx - dp)) + gamma
            r = p / q

            if r < 0.0 and gamma != 0.0:
                stpc = stp + r * (stx - stp)
            elif stp > stx:
                stpc = stpmax
            else:
                stpc = stpmin

            stpq = stp + (dp / (dp - dx)) * (stx - stp)

            if brackt:
                stpf = stpc if abs(stp - stpc) < abs(stp - stpq) else stpq
            else:
                stpf = stpc if abs(stp - stpc) > abs(stp - stpq) else stpq
        else:
            # derivative does not decrease in magnitude
            info = 4
            bound = False

            if brackt:
                theta = 3.0 * (fp - fy) / (sty - stp) + dy + dp
                s = _cubic_scale(theta, dy, dp)
                gamma = s * math.sqrt((theta / s) ** 2 - (dy / s) * (dp / s))

                if stp > sty:
                    gamma = -gamma

                p = (gamma - dp) + theta
                q = ((gamma - dp) + gamma) + dy
                r = p / q

                stpf = stp + r * (sty - stp)
            elif stp > stx:
                stpf = stpmax
            else:
                stpf = stpmin
    except (ZeroDivisionError, ValueError):
        return unchanged

    if not math.isfinite(stpf):
        return unchanged

    if fp > fx:
        sty, fy, dy = stp, fp, dp
    else:
        if sgnd < 0.0:
            sty, fy, dy = stx, fx, dx
        stx, fx, dx = stp, fp, dp

    stp = max(stpmin, min(stpmax, stpf))

    if brackt and bound:
        if sty > stx:
            stp = min(stx + 0.66 * (sty - stx), stp)
        else:
            stp = max(stx + 0.66 * (sty - stx), stp)

    return StepUpdate(stx, fx, dx, sty, fy, dy, stp, brackt, info)


def _prepare_trial(
    state: BracketState, stp: float, params: LineSearchParameters
) -> Tuple[float, BracketState]:
    if state.brackt:
        stmin = min(state.stx, state.sty)
        stmax = max(state.stx, state.sty)
    else:
        stmin = state.stx
        stmax = stp + params.xtrapf * (stp - state.stx)

    stp = max(stp, params.stpmin)
    stp = min(stp, params.stpmax)

    # fall back to the best point if no further progress is possible
    if ((state.brackt and (stp <= stmin or stp >= stmax))
            or state.nfev >= params.maxfev - 1
            or state.infoc == 0
            or (state.brackt and stmax - stmin <= params.xtol * stmax)):
        stp = state.stx

    return stp, replace(state, stmin=stmin, stmax=stmax)


def start(
    f0: float,
    dg0: float,
    stp: float = 1.0,
    params: LineSearchParameters = DEFAULT_PARAMETERS,
) -> Tuple[float, BracketState, Optional[TerminationCode]]:
    """Initialize the search.

    Args:
        f0: Function value at step 0
        dg0: Directional derivative at step 0
        stp: Initial trial step
        params: Safeguard constants

    Returns:
        Tuple of (first trial step, state, code); ``code`` is
        ``DESCENT_VIOLATED`` if no trial must be evaluated
    """
    if stp <= 0.0:
        raise ValueError(f"Initial step must be positive, got {stp}")

    width = params.stpmax - params.stpmin

    state = BracketState(
        finit=f0,
        dginit=dg0,
        dgtest=params.ftol * dg0,
        stx=0.0,
        fx=f0,
        dx=dg0,
        sty=0.0,
        fy=f0,
        dy=dg0,
        width=width,
        width1=2.0 * width,
    )

    if not (math.isfinite(f0) and math.isfinite(dg0)) or dg0 >= 0.0:
        return stp, state, TerminationCode.DESCENT_VIOLATED

    stp, state = _prepare_trial(state, stp, params)

    return stp, state, None


def _termination(
    state: BracketState, trial: TrialObservation, nfev: int, params: LineSearchParameters
) -> Optional[TerminationCode]:
    stp, f, dg = trial
    ftest1 = state.finit + stp * state.dgtest

    if f <= ftest1 and abs(dg) <= params.gtol * (-state.dginit):
        return TerminationCode.CONVERGED
    if stp == params.stpmax and f <= ftest1 and dg <= state.dgtest:
        return TerminationCode.MAX_STEP
    if stp == params.stpmin and (f > ftest1 or dg >= state.dgtest):
        return TerminationCode.MIN_STEP
    if nfev >= params.maxfev:
        return TerminationCode.MAX_EVALUATIONS
    if state.brackt and state.stmax - state.stmin <= params.xtol * state.stmax:
        return TerminationCode.BRACKET_COLLAPSED
    if (state.brackt and (stp <= state.stmin or stp >= state.stmax)) or state.infoc == 0:
        return TerminationCode.STALLED

    return None


def step(
    state: BracketState,
    trial: TrialObservation,
    params: LineSearchParameters = DEFAULT_PARAMETERS,
) -> Tuple[float, BracketState, Optional[TerminationCode]]:
    """Consume one trial evaluation.

    Args:
        state: State returned by ``start`` or the previous ``step``
        trial: Evaluation at the trial step proposed with ``state``
        params: Safeguard constants

    Returns:
        Tuple of (next trial step, state, code). Once ``code`` is set the
        search is finished and the returned step is ``trial.stp``.
    """
    stp, f, dg = trial
    nfev = state.nfev + 1

    code = _termination(state, trial, nfev, params)

    if code is not None:
        return stp, replace(state, nfev=nfev), code

    if not (math.isfinite(f) and math.isfinite(dg)):
        # step back towards the best point
        next_stp = state.stx + 0.5 * (stp - state.stx)
        return (*_prepare_trial(replace(state, nfev=nfev), next_stp, params), None)

    dgtest = state.dgtest
    ftest1 = state.finit + stp * dgtest

    stage1 = state.stage1
    if stage1 and f <= ftest1 and dg >= min(params.ftol, params.gtol) * state.dginit:
        stage1 = False

    if stage1 and f <= state.fx and f > ftest1:
        # use the modified function psi(a) = f(a) - f(0) - a * dgtest
        update = safeguarded_step(
            state.stx, state.fx - state.stx * dgtest, state.dx - dgtest,
            state.sty, state.fy - state.sty * dgtest, state.dy - dgtest,
            stp, f - stp * dgtest, dg - dgtest,
            state.brackt, state.stmin, state.stmax,
        )
        update = update._replace(
            fx=update.fx + update.stx * dgtest,
            fy=update.fy + update.sty * dgtest,
            dx=update.dx + dgtest,
            dy=update.dy + dgtest,
        )
    else:
        update = safeguarded_step(
            state.stx, state.fx, state.dx,
            state.sty, state.fy, state.dy,
            stp, f, dg,
            state.brackt, state.stmin, state.stmax,
        )

    next_stp = update.stp
    width = state.width
    width1 = state.width1

    if update.brackt:
        if abs(update.sty - update.stx) >= 0.66 * width1:
            next_stp = update.stx + 0.5 * (update.sty - update.stx)
        width1 = width
        width = abs(update.sty - update.stx)

    new_state = replace(
        state,
        stx=update.stx,
        fx=update.fx,
        dx=update.dx,
        sty=update.sty,
        fy=update.fy,
        dy=update.dy,
        brackt=update.brackt,
        stage1=stage1,
        width=width,
        width1=width1,
        nfev=nfev,
        infoc=update.info,
    )

    next_stp, new_state = _prepare_trial(new_state, next_stp, params)

    return next_stp, new_state, None


class MoreThuenteLineSearch:
    """Line search satisfying the strong Wolfe conditions."""

    def __init__(self, params: Optional[LineSearchParameters] = None):
        self.params = params or DEFAULT_PARAMETERS
        self.logger = logging.getLogger(__name__)

    def search(
        self,
        phi: Callable[[float], Tuple[float, float]],
        f0: float,
        dg0: float,
        stp: float = 1.0,
    ) -> LineSearchResult:
        """Search along a direction.

        Args:
            phi: Function value and directional derivative at step length ``a``
            f0: Function value at step 0
            dg0: Directional derivative at step 0
            stp: Initial trial step

        Returns:
            Line search result with the termination code
        """
        stp, state, code = start(f0, dg0, stp, self.params)

        if code is not None:
            self.logger.warning(f"Line search aborted: {code.message} (dg0={dg0:.3e})")
            return LineSearchResult(step=0.0, f=f0, nfev=0, success=False,
                                    message=code.message, code=code)

        while True:
            f, dg = phi(stp)
            next_stp, state, code = step(state, TrialObservation(stp, float(f), float(dg)), self.params)

            if code is not None:
                if not code.success:
                    self.logger.warning(f"Line search stopped: {code.message} (step={stp:.3e})")
                return LineSearchResult(step=stp, f=float(f), nfev=state.nfev,
                                        success=code.success, message=code.message, code=code)

            stp = next_stp
