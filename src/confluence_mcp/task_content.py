"""Task page content in Confluence storage format.

Pages are built and edited as lxml trees. Every section an update touches is
located by its heading or label; when one cannot be found the update reports
it instead of returning the content unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from html.entities import name2codepoint

from lxml import etree

from .errors import TemplateAnchorError

AC_NS = "http://atlassian.com/content"
RI_NS = "http://atlassian.com/resource/identifier"
NSMAP = {"ac": AC_NS, "ri": RI_NS}

STATUS_LABEL = "Status:"
CURRENT_STATUS_LABEL = "Current status:"
CREATED_LABEL = "Created:"

OVERVIEW_HEADING = "Task overview"
OBJECTIVES_HEADING = "Objectives"
PROGRESS_HEADING = "Progress"
FINDINGS_HEADING = "Work done and findings"
NEXT_ACTIONS_HEADING = "Next actions"
DECISION_LOG_HEADING = "Decision log"

FINDINGS_PLACEHOLDER = "(Work done and findings will be recorded here)"
NEXT_ACTIONS_PLACEHOLDER = "(Next steps will be listed here)"

ANCHOR_STATUS = "status line"
ANCHOR_FINDINGS = "findings list"
ANCHOR_NEXT_ACTIONS = "next actions list"
ANCHOR_DECISION_LOG = "decision log table"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"

_XML_ENTITIES = {"amp", "lt", "gt", "quot", "apos"}
_ENTITY_RE = re.compile(r"&([A-Za-z][A-Za-z0-9]*);")


@dataclass(slots=True)
class TaskPageData:
    task_description: str
    objectives: list[str] = field(default_factory=list)
    progress: str = "In progress"


@dataclass(slots=True)
class ProgressUpdate:
    progress: str
    new_findings: list[str] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)


@dataclass(slots=True)
class TaskPageUpdate:
    content: str
    missing_anchors: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing_anchors


def _timestamp(now: datetime | None) -> str:
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def _sub(parent: etree._Element, tag: str, text: str | None = None) -> etree._Element:
    element = etree.SubElement(parent, tag)
    if text is not None:
        element.text = text
    element.tail = "\n"
    return element


def _labelled_paragraph(parent: etree._Element, label: str, value: str) -> etree._Element:
    paragraph = _sub(parent, "p")
    strong = etree.SubElement(paragraph, "strong")
    strong.text = label
    strong.tail = f" {value}"
    return paragraph


def _new_root() -> etree._Element:
    root = etree.Element("storage-document", nsmap=NSMAP)
    root.text = ""
    return root


def _serialize(root: etree._Element) -> str:
    # Namespace declarations live on the wrapper only, so stripping it leaves
    # plain storage markup.
    markup = etree.tostring(root, encoding="unicode")
    if markup.endswith("/>"):
        return ""
    start = markup.index(">") + 1
    end = markup.rindex("</")
    return markup[start:end].strip()


def _escape_entities(markup: str) -> str:
    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in _XML_ENTITIES or name not in name2codepoint:
            return match.group(0)
        return f"&#{name2codepoint[name]};"

    return _ENTITY_RE.sub(_replace, markup)


def parse_storage(markup: str) -> etree._Element:
    """Parse storage-format markup into a wrapper element."""
    declarations = " ".join(f'xmlns:{prefix}="{uri}"' for prefix, uri in NSMAP.items())
    wrapped = f"<storage-document {declarations}>{_escape_entities(markup)}</storage-document>"
    try:
        return etree.fromstring(wrapped.encode("utf-8"))
    except etree.XMLSyntaxError as exc:
        raise TemplateAnchorError(["well-formed storage markup"]) from exc


def generate_task_page_content(data: TaskPageData, now: datetime | None = None) -> str:
    """Render the initial body of a task tracking page."""
    stamp = _timestamp(now)
    root = _new_root()

    macro = _sub(root, f"{{{AC_NS}}}structured-macro")
    macro.set(f"{{{AC_NS}}}name", "info")
    rich_body = etree.SubElement(macro, f"{{{AC_NS}}}rich-text-body")
    rich_body.text = "\n"
    _labelled_paragraph(rich_body, CREATED_LABEL, stamp)
    _labelled_paragraph(rich_body, STATUS_LABEL, data.progress)

    _sub(root, "h2", OVERVIEW_HEADING)
    _sub(root, "p", data.task_description)

    _sub(root, "h2", OBJECTIVES_HEADING)
    objectives = _sub(root, "ul")
    for objective in data.objectives:
        _sub(objectives, "li", objective)

    _sub(root, "h2", PROGRESS_HEADING)
    _labelled_paragraph(root, CURRENT_STATUS_LABEL, data.progress)

    _sub(root, "h2", FINDINGS_HEADING)
    _sub(_sub(root, "ul"), "li", FINDINGS_PLACEHOLDER)

    _sub(root, "h2", NEXT_ACTIONS_HEADING)
    _sub(_sub(root, "ul"), "li", NEXT_ACTIONS_PLACEHOLDER)

    _sub(root, "h2", DECISION_LOG_HEADING)
    tbody = etree.SubElement(_sub(root, "table"), "tbody")
    header = _sub(tbody, "tr")
    for label in ("Date", "Decision", "Reason"):
        _sub(header, "th", label)
    first = _sub(tbody, "tr")
    for value in (stamp, "Task started", "-"):
        _sub(first, "td", value)

    return _serialize(root)


def _find_section(root: etree._Element, heading: str, tag: str) -> etree._Element | None:
    for h2 in root.iter("h2"):
        if "".join(h2.itertext()).strip() != heading:
            continue
        sibling = h2.getnext()
        while sibling is not None and not isinstance(sibling.tag, str):
            sibling = sibling.getnext()
        if sibling is not None and sibling.tag == tag:
            return sibling
        return None
    return None


def _status_paragraphs(root: etree._Element) -> list[etree._Element]:
    matches = []
    for paragraph in root.iter("p"):
        strong = paragraph.find("strong")
        if strong is not None and (strong.text or "").strip() in (STATUS_LABEL, CURRENT_STATUS_LABEL):
            matches.append(paragraph)
    return matches


def _clear_children(element: etree._Element) -> None:
    for child in list(element):
        element.remove(child)
    element.text = "\n"


def update_task_page_content(
    existing: str,
    update: ProgressUpdate,
    now: datetime | None = None,
    *,
    strict: bool = True,
) -> TaskPageUpdate:
    """Apply a progress update to a task page body.

    Raises:
        TemplateAnchorError: when ``strict`` and any section is missing.
            In non-strict mode the missing sections are listed on the result
            and the remaining ones are still updated.
    """
    stamp = _timestamp(now)
    root = parse_storage(existing)
    missing: list[str] = []

    status_paragraphs = _status_paragraphs(root)
    if not status_paragraphs:
        missing.append(ANCHOR_STATUS)
    for paragraph in status_paragraphs:
        paragraph.find("strong").tail = f" {update.progress}"
        for extra in list(paragraph)[1:]:
            paragraph.remove(extra)

    if update.new_findings:
        findings = _find_section(root, FINDINGS_HEADING, "ul")
        if findings is None:
            missing.append(ANCHOR_FINDINGS)
        else:
            for item in list(findings):
                if "".join(item.itertext()).strip() == FINDINGS_PLACEHOLDER:
                    findings.remove(item)
            for index, finding in enumerate(update.new_findings):
                item = etree.Element("li")
                item.text = f"{finding} ({stamp})"
                item.tail = "\n"
                findings.insert(index, item)
            findings.text = "\n"

    if update.next_steps:
        next_actions = _find_section(root, NEXT_ACTIONS_HEADING, "ul")
        if next_actions is None:
            missing.append(ANCHOR_NEXT_ACTIONS)
        else:
            _clear_children(next_actions)
            for step in update.next_steps:
                _sub(next_actions, "li", step)

    table = _find_section(root, DECISION_LOG_HEADING, "table")
    if table is None:
        missing.append(ANCHOR_DECISION_LOG)
    else:
        rows = table.find("tbody")
        if rows is None:
            rows = table
        reason = "Added new findings" if update.new_findings else "Progress update"
        row = _sub(rows, "tr")
        for value in (stamp, f"Progress update: {update.progress}", reason):
            _sub(row, "td", value)

    if missing and strict:
        raise TemplateAnchorError(missing)
    return TaskPageUpdate(content=_serialize(root), missing_anchors=missing)
