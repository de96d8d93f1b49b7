#!/usr/bin/env python3

import argparse
import json
import os
import re
import shlex
import subprocess
import sys
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    Union,
)

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

__version__ = "0.1.0"

# 데이터 행은 stdout(print), 진단 메시지는 stderr 콘솔로 분리한다.
console = Console(stderr=True)

KUBECTL = os.environ.get("KUBE_ROWS_KUBECTL", "kubectl")
FLUX = "flux"
KUSTOMIZE = "kustomize"

# flux reconcile 대상이 되는 리소스 종류 (plural / flux CLI 표기)
RECONCILABLE_KIND = "kustomizations"
RECONCILABLE_FLUX_KIND = "kustomization"
POD_KIND = "pods"

# kubectl api-resources 없이 쓰는 별칭 (--input, --no-resolve)
_STATIC_KIND_ALIASES = {
    "po": POD_KIND,
    "pod": POD_KIND,
    "ks": RECONCILABLE_KIND,
    "kustomization": RECONCILABLE_KIND,
}

NAMESPACE_COLUMN = "NAMESPACE"
DEFAULT_SHELL = "sh"

API_REQUEST_TIMEOUT = 10.0

EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_NOT_FOUND = 127
EXIT_INTERRUPTED = 130

_HEADER_TOKEN = re.compile(r"([-A-Z0-9_]+)( +|$)")
_UNESCAPED_COMMA = re.compile(r"(?<!\\),")


class ConfigurationError(ValueError):
    """행 처리 전에 발견되는 설정/입력 오류."""

    exit_code = EXIT_FAILURE


class LayoutError(ConfigurationError):
    """헤더에서 컬럼을 하나도 찾지 못했을 때."""


class FilterSyntaxError(ConfigurationError):
    """필터 표현식 문법 오류 (사용법 오류로 취급)."""

    exit_code = EXIT_USAGE


class ExternalCommandError(RuntimeError):
    """외부 명령(kubectl 등)이 0이 아닌 코드로 종료된 경우."""

    def __init__(self, command: str, returncode: int, detail: str) -> None:
        super().__init__(f"{command}: {detail}")
        self.command = command
        self.returncode = returncode
        self.detail = detail


# ---------------------------------------------------------------------------
# Column layout
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnDescriptor:
    """헤더에서 얻은 컬럼 이름과 폭. 마지막 컬럼은 폭 제한이 없다(None)."""

    name: str
    width: Optional[int]


@dataclass(frozen=True)
class Layout:
    """고정폭 행을 필드 목록으로 나누고 다시 고정폭 행으로 합친다."""

    columns: Tuple[ColumnDescriptor, ...]

    @property
    def names(self) -> List[str]:
        return [column.name for column in self.columns]

    @property
    def is_namespaced(self) -> bool:
        return self.columns[0].name == NAMESPACE_COLUMN

    def decode(self, line: str) -> List[str]:
        """
        한 줄을 정확히 len(columns)개의 필드로 분리한다.
        마지막 컬럼을 제외한 필드는 뒤쪽 공백을 제거하고, 마지막 컬럼은
        줄바꿈만 제거한 나머지 전체를 그대로 사용한다. 짧은 줄은 빈 문자열로 채운다.
        """
        text = line.rstrip("\r\n")
        fields: List[str] = []
        offset = 0
        for column in self.columns[:-1]:
            width = column.width or 0
            fields.append(text[offset : offset + width].rstrip(" "))
            offset += width
        fields.append(text[offset:])
        return fields

    def encode(self, fields: Sequence[str]) -> str:
        parts: List[str] = []
        for column, value in zip(self.columns[:-1], fields):
            width = column.width or 0
            parts.append(value[:width].ljust(width))
        if len(fields) >= len(self.columns):
            parts.append(fields[len(self.columns) - 1])
        return "".join(parts)


def detect_layout(header: str) -> Layout:
    """
    헤더 줄 앞에서부터 `NAME<공백>` 토큰을 반복해서 떼어내며 컬럼을 기록한다.
    컬럼 폭은 이름 길이 + 뒤따르는 공백 길이이며, 마지막 컬럼은 폭 제한이 없다.
    """
    rest = header.rstrip("\r\n")
    found: List[Tuple[str, int]] = []
    while True:
        match = _HEADER_TOKEN.match(rest)
        if match is None:
            break
        found.append((match.group(1), len(match.group(0))))
        rest = rest[match.end() :]
        if not match.group(2):
            break
    if not found:
        raise LayoutError(f"헤더에서 컬럼을 찾을 수 없습니다: {header.strip()!r}")
    columns = [ColumnDescriptor(name, width) for name, width in found[:-1]]
    columns.append(ColumnDescriptor(found[-1][0], None))
    return Layout(tuple(columns))


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Include:
    """값에서 정규식이 검색되면 통과."""

    pattern: "re.Pattern[str]"

    @property
    def regex(self) -> str:
        return self.pattern.pattern

    def accepts(self, value: str) -> bool:
        return self.pattern.search(value) is not None


@dataclass(frozen=True)
class Exclude:
    """값에서 정규식이 검색되면 탈락."""

    pattern: "re.Pattern[str]"

    @property
    def regex(self) -> str:
        return self.pattern.pattern

    def accepts(self, value: str) -> bool:
        return self.pattern.search(value) is None


ColumnPattern = Union[Include, Exclude]
ColumnRef = Union[int, str]


@dataclass(frozen=True)
class MatchSpec:
    """1부터 시작하는 컬럼 인덱스별 조건. 모든 조건을 만족해야 행이 남는다."""

    predicates: Tuple[Tuple[int, ColumnPattern], ...] = ()

    def matches(self, row: Sequence[str]) -> bool:
        for index, pattern in self.predicates:
            if not pattern.accepts(row[index - 1]):
                return False
        return True


@dataclass(frozen=True)
class FilterSpec:
    """명령행에서 읽은 필터. 컬럼 참조는 인덱스 또는 헤더 이름."""

    terms: Tuple[Tuple[ColumnRef, ColumnPattern], ...] = ()

    def resolve(self, layout: Layout) -> MatchSpec:
        names = [name.upper() for name in layout.names]
        resolved: Dict[int, ColumnPattern] = {}
        for ref, pattern in self.terms:
            if isinstance(ref, int):
                if ref > len(names):
                    raise ConfigurationError(
                        f"컬럼 {ref}은(는) 존재하지 않습니다 (컬럼 수: {len(names)})."
                    )
                index = ref
            else:
                if ref.upper() not in names:
                    raise ConfigurationError(
                        f"헤더에 '{ref}' 컬럼이 없습니다: {' '.join(layout.names)}"
                    )
                index = names.index(ref.upper()) + 1
            if index in resolved:
                raise ConfigurationError(f"컬럼 {index}에 필터가 두 번 지정되었습니다.")
            resolved[index] = pattern
        return MatchSpec(tuple(sorted(resolved.items())))


def _parse_filter_term(term: str) -> Tuple[ColumnRef, ColumnPattern]:
    ref_text, sep, regex = term.partition("=")
    ref_text = ref_text.strip()
    if not sep or not ref_text:
        raise FilterSyntaxError(f"필터는 INDEX=REGEX 형식이어야 합니다: {term!r}")
    ref: ColumnRef
    if ref_text.isdigit():
        ref = int(ref_text)
        if ref < 1:
            raise FilterSyntaxError(f"컬럼 인덱스는 1부터 시작합니다: {term!r}")
    else:
        ref = ref_text
    negated = regex.startswith("!")
    if negated:
        regex = regex[1:]
    try:
        compiled = re.compile(regex)
    except re.error as exc:
        raise FilterSyntaxError(f"잘못된 정규식 {regex!r}: {exc}") from exc
    return ref, (Exclude(compiled) if negated else Include(compiled))


def parse_filters(expressions: Iterable[str]) -> FilterSpec:
    """`2=Running,3=!^kube-` 형태의 표현식들을 FilterSpec으로 변환. `\\,`는 정규식 안의 쉼표."""
    terms: List[Tuple[ColumnRef, ColumnPattern]] = []
    seen = set()
    for expression in expressions:
        for raw in _UNESCAPED_COMMA.split(expression):
            if not raw:
                continue
            ref, pattern = _parse_filter_term(raw.replace("\\,", ","))
            key = ref.upper() if isinstance(ref, str) else ref
            if key in seen:
                raise FilterSyntaxError(f"같은 컬럼에 필터가 두 번 지정되었습니다: {ref}")
            seen.add(key)
            terms.append((ref, pattern))
    return FilterSpec(tuple(terms))


@dataclass(frozen=True)
class RowTarget:
    namespace: Optional[str]
    name: str

    @property
    def label(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name


def row_target(row: Sequence[str], layout: Layout) -> RowTarget:
    """NAMESPACE 컬럼이 있으면 (0: namespace, 1: name), 없으면 0번 컬럼만 이름으로 사용."""
    if layout.is_namespaced and len(row) > 1:
        return RowTarget(namespace=row[0].strip(), name=row[1].strip())
    return RowTarget(namespace=None, name=row[0].strip())


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Get:
    fail_fast: ClassVar[bool] = False


@dataclass(frozen=True)
class GetExtended:
    fail_fast: ClassVar[bool] = False


@dataclass(frozen=True)
class Delete:
    fail_fast: ClassVar[bool] = True


@dataclass(frozen=True)
class Edit:
    fail_fast: ClassVar[bool] = True


@dataclass(frozen=True)
class Logs:
    container: Optional[str] = None
    follow: bool = False
    fail_fast: ClassVar[bool] = False


@dataclass(frozen=True)
class Shell:
    container: Optional[str] = None
    tty: bool = True
    stdin: bool = True
    command: Tuple[str, ...] = (DEFAULT_SHELL,)
    fail_fast: ClassVar[bool] = True


@dataclass(frozen=True)
class GetContainers:
    fail_fast: ClassVar[bool] = False


@dataclass(frozen=True)
class Reconcile:
    fail_fast: ClassVar[bool] = False


@dataclass(frozen=True)
class Explain:
    """행 처리 없이 `kubectl explain`만 실행."""

    target: str


@dataclass(frozen=True)
class Build:
    """행 처리 없이 `kustomize build`만 실행."""

    path: str = "."


RowAction = Union[Get, GetExtended, Delete, Edit, Logs, Shell, GetContainers, Reconcile]
Action = Union[RowAction, Explain, Build]


@dataclass(frozen=True)
class Options:
    """명령행 인자로부터 한 번 만들어지고 이후 읽기 전용으로 전달되는 설정."""

    action: Action
    kind: Optional[str] = None
    filters: FilterSpec = field(default_factory=FilterSpec)
    namespace: Optional[str] = None
    all_namespaces: bool = False
    selector: Optional[str] = None
    extra_args: Tuple[str, ...] = ()
    dry_run: bool = False
    force: bool = False
    preserve_columns: bool = False
    show_header: bool = False
    verbose: bool = False
    input_path: Optional[str] = None
    resolve_kinds: bool = True


@dataclass(frozen=True)
class DispatchContext:
    options: Options
    kind: str
    layout: Layout


# ---------------------------------------------------------------------------
# External commands
# ---------------------------------------------------------------------------


def _echo_command(command_str: str) -> None:
    console.print(f"명령어: {escape(command_str)}", style="dim")


def run_external(command: Sequence[str], options: Options) -> int:
    """외부 명령을 argv 그대로 실행하고 종료 코드를 반환. dry-run이면 명령만 출력."""
    command_str = shlex.join(command)
    if options.dry_run:
        print(command_str, flush=True)
        return 0
    if options.verbose:
        _echo_command(command_str)
    sys.stdout.flush()
    completed = subprocess.run(list(command), check=False)
    return completed.returncode


def _run_capture(command: Sequence[str], *, verbose: bool = False) -> str:
    """명령 출력을 문자열로 수집. 실패 시 ExternalCommandError."""
    command_str = shlex.join(command)
    if verbose:
        _echo_command(command_str)
    completed = subprocess.run(
        list(command),
        check=False,
        capture_output=True,
        text=True,
        encoding="utf-8",
    )
    if completed.returncode != 0:
        error = completed.stderr.strip() or "command execution failed."
        raise ExternalCommandError(command_str, completed.returncode, error)
    return completed.stdout


def _run_kubectl_json(
    args: Sequence[str],
    *,
    timeout: float = API_REQUEST_TIMEOUT,
    verbose: bool = False,
) -> Any:
    """kubectl 명령을 JSON 출력으로 실행한 뒤 결과를 dict로 반환한다."""
    command = [KUBECTL, *args, "-o", "json"]
    command_str = shlex.join(command)
    if verbose:
        _echo_command(command_str)
    try:
        completed = subprocess.run(
            command,
            check=False,
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise ExternalCommandError(
            command_str, EXIT_FAILURE, "kubectl command timed out."
        ) from exc
    if completed.returncode != 0:
        error = (
            completed.stderr.strip()
            or completed.stdout.strip()
            or "kubectl command failed."
        )
        raise ExternalCommandError(command_str, completed.returncode, error)
    try:
        return json.loads(completed.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise ExternalCommandError(
            command_str, EXIT_FAILURE, f"kubectl JSON decode error: {exc}"
        ) from exc


def stream_lines(command: Sequence[str], *, verbose: bool = False) -> Iterator[str]:
    """실행 중인 프로세스의 stdout을 한 줄씩 흘려보낸다."""
    command_str = shlex.join(command)
    if verbose:
        _echo_command(command_str)
    with subprocess.Popen(
        list(command),
        stdout=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
    ) as proc:
        for line in proc.stdout or ():
            yield line
    if proc.returncode != 0:
        raise ExternalCommandError(
            command_str, proc.returncode, "resource listing failed."
        )


def _read_input(path: str) -> Iterator[str]:
    if path == "-":
        for raw in sys.stdin.buffer:
            yield raw.decode("utf-8", errors="replace")
        return
    with open(path, encoding="utf-8", errors="replace") as handle:
        yield from handle


# ---------------------------------------------------------------------------
# Resource kinds
# ---------------------------------------------------------------------------


def load_kind_aliases(*, verbose: bool = False) -> Dict[str, str]:
    """
    `kubectl api-resources` 출력으로 별칭 → plural 리소스 이름 매핑을 만든다.
    1번 컬럼은 plural 이름, 2번 컬럼은 쉼표로 구분된 short name,
    KIND 컬럼이 있으면 소문자 단수형도 함께 등록한다.
    """
    output = _run_capture([KUBECTL, "api-resources"], verbose=verbose)
    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        raise ConfigurationError("kubectl api-resources 결과가 비어 있습니다.")
    layout = detect_layout(lines[0])
    names = layout.names
    kind_index = names.index("KIND") if "KIND" in names else None
    aliases: Dict[str, str] = {}
    for line in lines[1:]:
        row = layout.decode(line)
        plural = row[0].strip()
        if not plural:
            continue
        aliases.setdefault(plural.lower(), plural)
        if len(row) > 1:
            for short_name in row[1].split(","):
                if short_name.strip():
                    aliases.setdefault(short_name.strip().lower(), plural)
        if kind_index is not None and row[kind_index].strip():
            aliases.setdefault(row[kind_index].strip().lower(), plural)
    return aliases


def resolve_kind(kind: str, aliases: Dict[str, str]) -> str:
    key = kind.lower()
    if key in aliases:
        return aliases[key]
    prefix, dot, _ = key.partition(".")
    if dot and prefix in aliases:
        return kind
    raise ConfigurationError(f"알 수 없는 리소스 종류입니다: {kind}")


def _base_kind(kind: str) -> str:
    """api-resources 조회 없이도 단수형/short name을 plural로 맞춘다."""
    base = kind.split(".", 1)[0].lower()
    return _STATIC_KIND_ALIASES.get(base, base)


def validate_action_for_kind(action: Action, kind: str) -> None:
    base = _base_kind(kind)
    if isinstance(action, Reconcile) and base != RECONCILABLE_KIND:
        raise ConfigurationError(
            f"reconcile은 {RECONCILABLE_KIND} 리소스에서만 사용할 수 있습니다 (입력: {kind})."
        )
    if isinstance(action, (Shell, GetContainers)) and base != POD_KIND:
        raise ConfigurationError(
            f"이 동작은 {POD_KIND} 리소스에서만 사용할 수 있습니다 (입력: {kind})."
        )


# ---------------------------------------------------------------------------
# Row handlers
# ---------------------------------------------------------------------------


def _namespace_args(target: RowTarget, options: Options) -> List[str]:
    namespace = target.namespace or options.namespace
    return ["-n", namespace] if namespace else []


def pod_containers(
    namespace: Optional[str], name: str, *, verbose: bool = False
) -> List[str]:
    """Pod의 spec.containers[].name 목록."""
    args = ["get", "pod", name]
    if namespace:
        args.extend(["-n", namespace])
    payload = _run_kubectl_json(args, verbose=verbose)
    containers = (payload.get("spec") or {}).get("containers") or []
    return [item["name"] for item in containers if item.get("name")]


def _emit_row(ctx: DispatchContext, action: Get, row: List[str], target: RowTarget) -> int:
    if ctx.options.preserve_columns:
        print(ctx.layout.encode(row))
    else:
        print("\t".join(row))
    return 0


def _get_extended(
    ctx: DispatchContext, action: GetExtended, row: List[str], target: RowTarget
) -> int:
    command = [
        KUBECTL,
        "get",
        ctx.kind,
        target.name,
        *_namespace_args(target, ctx.options),
        *ctx.options.extra_args,
    ]
    return run_external(command, ctx.options)


def _delete(ctx: DispatchContext, action: Delete, row: List[str], target: RowTarget) -> int:
    if not ctx.options.force:
        answer = Prompt.ask(
            f"{escape(ctx.kind)} {escape(target.label)} 삭제할까요?",
            choices=["y", "n"],
            default="n",
            console=console,
        )
        if answer.strip().lower() != "y":
            console.print(f"건너뜀: {escape(target.label)}", style="dim")
            return 0
    command = [
        KUBECTL,
        "delete",
        ctx.kind,
        target.name,
        *_namespace_args(target, ctx.options),
    ]
    return run_external(command, ctx.options)


def _edit(ctx: DispatchContext, action: Edit, row: List[str], target: RowTarget) -> int:
    command = [KUBECTL, "edit", ctx.kind, target.name, *_namespace_args(target, ctx.options)]
    return run_external(command, ctx.options)


def _logs(ctx: DispatchContext, action: Logs, row: List[str], target: RowTarget) -> int:
    if _base_kind(ctx.kind) == POD_KIND:
        resource = target.name
    else:
        resource = f"{ctx.kind}/{target.name}"
    command = [KUBECTL, "logs", *_namespace_args(target, ctx.options), resource]
    if action.container:
        command.extend(["-c", action.container])
    else:
        command.extend(["--all-containers=true", "--prefix"])
    if action.follow:
        command.append("-f")
    return run_external(command, ctx.options)


def _shell(ctx: DispatchContext, action: Shell, row: List[str], target: RowTarget) -> int:
    namespace = target.namespace or ctx.options.namespace
    container = action.container
    if container is None:
        containers = pod_containers(namespace, target.name, verbose=ctx.options.verbose)
        if not containers:
            console.print(
                f"{escape(target.label)}: 컨테이너를 찾을 수 없습니다.", style="bold red"
            )
            return EXIT_FAILURE
        container = containers[0]
        console.print(
            f"{escape(target.label)}: 컨테이너를 지정하지 않아 첫 번째 컨테이너 "
            f"'{escape(container)}'을(를) 선택했습니다.",
            style="bold yellow",
        )
    command = [KUBECTL, "exec", *_namespace_args(target, ctx.options)]
    if action.stdin:
        command.append("-i")
    if action.tty:
        command.append("-t")
    command.extend([target.name, "-c", container, "--", *action.command])
    return run_external(command, ctx.options)


def _get_containers(
    ctx: DispatchContext, action: GetContainers, row: List[str], target: RowTarget
) -> int:
    namespace = target.namespace or ctx.options.namespace
    for container in pod_containers(namespace, target.name, verbose=ctx.options.verbose):
        print("\t".join([namespace or "", target.name, container]))
    return 0


def _reconcile(
    ctx: DispatchContext, action: Reconcile, row: List[str], target: RowTarget
) -> int:
    command = [
        FLUX,
        "reconcile",
        RECONCILABLE_FLUX_KIND,
        target.name,
        *_namespace_args(target, ctx.options),
        "--with-source",
    ]
    return run_external(command, ctx.options)


ROW_ACTION_HANDLERS: Dict[Type[Any], Callable[..., int]] = {
    Get: _emit_row,
    GetExtended: _get_extended,
    Delete: _delete,
    Edit: _edit,
    Logs: _logs,
    Shell: _shell,
    GetContainers: _get_containers,
    Reconcile: _reconcile,
}


def dispatch(
    action: RowAction, ctx: DispatchContext, row: List[str], target: RowTarget
) -> int:
    """행 하나에 동작을 적용하고 외부 명령의 종료 코드를 반환."""
    handler = ROW_ACTION_HANDLERS[type(action)]
    try:
        return handler(ctx, action, row, target)
    except ExternalCommandError as exc:
        console.print(f"{escape(target.label)}: {escape(exc.detail)}", style="bold red")
        console.print(f"명령어: {escape(exc.command)}", style="dim")
        return exc.returncode or EXIT_FAILURE


def _warn_no_rows() -> None:
    console.print(
        "조건에 일치하는 행이 없습니다. 필터 조건을 확인하세요.", style="bold yellow"
    )


def process_rows(lines: Iterable[str], options: Options, kind: str) -> int:
    """
    첫 줄(헤더)로 레이아웃을 만들고, 나머지 줄을 도착 순서대로 분해/필터링한 뒤
    남은 행마다 동작을 하나씩 실행한다.
    """
    action = options.action
    iterator = iter(lines)
    header = next(iterator, None)
    while header is not None and not header.strip():
        header = next(iterator, None)
    if header is None:
        _warn_no_rows()
        return 0

    layout = detect_layout(header)
    match_spec = options.filters.resolve(layout)
    ctx = DispatchContext(options=options, kind=kind, layout=layout)

    if options.show_header and isinstance(action, Get):
        _emit_row(ctx, action, layout.decode(header), RowTarget(None, ""))

    matched = 0
    exit_code = 0
    for line in iterator:
        if not line.strip():
            continue
        row = layout.decode(line)
        if not match_spec.matches(row):
            continue
        matched += 1
        target = row_target(row, layout)
        code = dispatch(action, ctx, row, target)
        if code == 0:
            continue
        if options.force:
            console.print(
                f"{escape(target.label)}: 종료 코드 {code}. --force 옵션으로 계속 진행합니다.",
                style="bold yellow",
            )
            continue
        if action.fail_fast:
            console.print(
                f"{escape(target.label)}: 종료 코드 {code}. 남은 행 처리를 중단합니다.",
                style="bold red",
            )
            return code
        exit_code = code

    if matched == 0:
        _warn_no_rows()
    return exit_code


def listing_command(kind: str, options: Options) -> List[str]:
    command = [KUBECTL, "get", kind]
    if options.all_namespaces:
        command.append("-A")
    elif options.namespace:
        command.extend(["-n", options.namespace])
    if options.selector:
        command.extend(["-l", options.selector])
    command.extend(options.extra_args)
    return command


def run(options: Options) -> int:
    """설정에 따라 한 번의 실행을 수행하고 종료 코드를 반환."""
    action = options.action
    if isinstance(action, Explain):
        return run_external([KUBECTL, "explain", action.target, *options.extra_args], options)
    if isinstance(action, Build):
        return run_external([KUSTOMIZE, "build", action.path, *options.extra_args], options)

    kind = options.kind or ""
    if options.resolve_kinds:
        kind = resolve_kind(kind, load_kind_aliases(verbose=options.verbose))
    validate_action_for_kind(action, kind)

    if options.input_path:
        lines: Iterable[str] = _read_input(options.input_path)
    else:
        lines = stream_lines(listing_command(kind, options), verbose=options.verbose)
    return process_rows(lines, options, kind)


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

ACTION_ALIASES = {
    "raw": "get-extended",
    "containers": "get-container",
}


def _build_action(args: argparse.Namespace) -> Action:
    command = ACTION_ALIASES.get(args.command, args.command)
    if command == "get":
        return Get()
    if command == "get-extended":
        return GetExtended()
    if command == "delete":
        return Delete()
    if command == "edit":
        return Edit()
    if command == "logs":
        return Logs(container=args.container, follow=args.follow)
    if command == "shell":
        return Shell(
            container=args.container,
            tty=args.tty,
            stdin=args.stdin,
            command=tuple(shlex.split(args.shell)),
        )
    if command == "get-container":
        return GetContainers()
    if command == "reconcile":
        return Reconcile()
    if command == "explain":
        return Explain(args.target)
    return Build(args.path)


def build_parser() -> argparse.ArgumentParser:
    runtime = argparse.ArgumentParser(add_help=False)
    runtime.add_argument(
        "-d", "--dry-run", action="store_true", help="Print commands instead of running them"
    )
    runtime.add_argument(
        "-v", "--verbose", action="store_true", help="Echo every external command"
    )

    rows = argparse.ArgumentParser(add_help=False, parents=[runtime])
    rows.add_argument("kind", help="Resource kind, plural, singular or short name")
    rows.add_argument(
        "filters",
        nargs="*",
        metavar="FILTER",
        help="INDEX=REGEX or INDEX=!REGEX, comma-separated; INDEX may be a column name",
    )
    rows.add_argument(
        "-m", "--match", action="append", default=[], metavar="FILTER", help="Extra filter"
    )
    rows.add_argument("-n", "--namespace", help="Namespace passed to kubectl")
    rows.add_argument(
        "-A", "--all-namespaces", action="store_true", help="List across all namespaces"
    )
    rows.add_argument("-l", "--selector", help="Label selector passed to kubectl get")
    rows.add_argument(
        "--force", action="store_true", help="Skip prompts, warn and continue on failures"
    )
    rows.add_argument(
        "-p",
        "--preserve-columns",
        action="store_true",
        help="Print fixed-width rows instead of tab-separated ones",
    )
    rows.add_argument("-H", "--headers", action="store_true", help="Print the header row")
    rows.add_argument(
        "-i", "--input", metavar="FILE", help="Read the listing from FILE ('-' for stdin)"
    )
    rows.add_argument(
        "--no-resolve", action="store_true", help="Skip resource kind alias resolution"
    )

    parser = argparse.ArgumentParser(
        prog="kube-rows",
        description="Filter kubectl tables by column and act on the matching rows",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", metavar="ACTION")
    subparsers.required = True

    subparsers.add_parser("get", parents=[rows], help="Print matching rows (default)")
    subparsers.add_parser(
        "get-extended", aliases=["raw"], parents=[rows], help="Re-run kubectl get per row"
    )
    subparsers.add_parser("delete", parents=[rows], help="Delete matching resources")
    subparsers.add_parser("edit", parents=[rows], help="Edit matching resources")

    logs_parser = subparsers.add_parser("logs", parents=[rows], help="Show logs")
    logs_parser.add_argument("-c", "--container", help="Container name")
    logs_parser.add_argument("-f", "--follow", action="store_true", help="Follow logs")

    shell_parser = subparsers.add_parser("shell", parents=[rows], help="Open a shell in pods")
    shell_parser.add_argument("-c", "--container", help="Container name")
    shell_parser.add_argument(
        "--tty", action=argparse.BooleanOptionalAction, default=True, help="Allocate a TTY"
    )
    shell_parser.add_argument(
        "--stdin", action=argparse.BooleanOptionalAction, default=True, help="Pass stdin"
    )
    shell_parser.add_argument("-s", "--shell", default=DEFAULT_SHELL, help="Shell command")

    subparsers.add_parser(
        "get-container", aliases=["containers"], parents=[rows], help="List pod containers"
    )
    subparsers.add_parser("reconcile", parents=[rows], help="flux reconcile kustomizations")

    explain_parser = subparsers.add_parser(
        "explain", parents=[runtime], help="kubectl explain TARGET"
    )
    explain_parser.add_argument("target", help="Resource or field path")

    bundle_parser = subparsers.add_parser(
        "build", parents=[runtime], help="kustomize build PATH"
    )
    bundle_parser.add_argument("path", nargs="?", default=".", help="Kustomization path")
    return parser


ACTION_NAMES = {
    "get",
    "get-extended",
    "raw",
    "delete",
    "edit",
    "logs",
    "shell",
    "get-container",
    "containers",
    "reconcile",
    "explain",
    "build",
}


def _split_passthrough(argv: Sequence[str]) -> Tuple[List[str], Tuple[str, ...]]:
    """`--` 뒤의 인자는 kubectl에 그대로 전달한다."""
    items = list(argv)
    if "--" in items:
        index = items.index("--")
        return items[:index], tuple(items[index + 1 :])
    return items, ()


_VALUE_OPTIONS = {
    "-n",
    "--namespace",
    "-l",
    "--selector",
    "-m",
    "--match",
    "-i",
    "--input",
    "-c",
    "--container",
    "-s",
    "--shell",
}


def _with_default_action(argv: List[str]) -> List[str]:
    """동작 이름을 맨 앞으로 옮기고, 없으면 get을 붙인다. 앞쪽 옵션은 건너뛴다."""
    index = 0
    while index < len(argv) and argv[index].startswith("-"):
        if argv[index] in _VALUE_OPTIONS:
            index += 1
        index += 1
    if index >= len(argv):
        return argv
    if argv[index] in ACTION_NAMES:
        return [argv[index], *argv[:index], *argv[index + 1 :]]
    return ["get", *argv]


def options_from_args(
    args: argparse.Namespace, extra_args: Sequence[str] = ()
) -> Options:
    action = _build_action(args)
    if isinstance(action, (Explain, Build)):
        return Options(
            action=action,
            extra_args=tuple(extra_args),
            dry_run=args.dry_run,
            verbose=args.verbose,
        )
    return Options(
        action=action,
        kind=args.kind,
        filters=parse_filters([*args.filters, *args.match]),
        namespace=args.namespace,
        all_namespaces=args.all_namespaces,
        selector=args.selector,
        extra_args=tuple(extra_args),
        dry_run=args.dry_run,
        force=args.force,
        preserve_columns=args.preserve_columns,
        show_header=args.headers,
        verbose=args.verbose,
        input_path=args.input,
        resolve_kinds=not args.no_resolve and args.input is None,
    )


def _exit_with_message(code: int, message: str, style: str = "bold yellow") -> None:
    """메시지를 stderr에 출력하고 지정된 코드로 종료."""
    console.print(message, style=style)
    sys.exit(code)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    메인 함수 실행
    """
    raw_args = list(sys.argv[1:] if argv is None else argv)
    cli_args, passthrough = _split_passthrough(raw_args)
    args = build_parser().parse_args(_with_default_action(cli_args))

    try:
        options = options_from_args(args, passthrough)
        code = run(options)
    except ConfigurationError as exc:
        _exit_with_message(exc.exit_code, f"설정 오류: {escape(str(exc))}", style="bold red")
    except ExternalCommandError as exc:
        console.print(f"명령어: {escape(exc.command)}", style="dim")
        _exit_with_message(
            exc.returncode or EXIT_FAILURE, escape(exc.detail), style="bold red"
        )
    except FileNotFoundError as exc:
        _exit_with_message(
            EXIT_NOT_FOUND,
            f"파일 또는 실행 파일을 찾을 수 없습니다: {escape(str(exc.filename))}",
            style="bold red",
        )
    except OSError as exc:
        reason = exc.strerror or str(exc)
        _exit_with_message(
            EXIT_FAILURE,
            f"파일을 읽을 수 없습니다: {escape(str(exc.filename))} ({escape(reason)})",
            style="bold red",
        )
    except KeyboardInterrupt:
        _exit_with_message(EXIT_INTERRUPTED, "사용자 중단(Ctrl+C) 감지: 종료합니다.")
    except EOFError:
        _exit_with_message(0, "입력이 종료되었습니다(EOF). 정상 종료합니다.", style="bold green")
    else:
        sys.exit(code)


if __name__ == "__main__":
    main()
