"""
Flowchart diagrams.

Parses a Mermaid-style flowchart subset, lays it out as layered vector
geometry at its natural size (networkx for ranking) and paints that
geometry at any uniform scale.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import networkx as nx
from PIL import Image, ImageDraw

from ..image_utils import parse_color
from .fonts import FontManager, FontType, line_height

logger = logging.getLogger(__name__)

HEADER_REGEX = re.compile(r'^(?:graph|flowchart)\s+(TD|TB|BT|LR|RL)\s*$', re.IGNORECASE)
ARROW_REGEX = re.compile(r'^(<)?(-->|-\.->|==>|---|-\.-|===)(?:\|([^|]*)\|)?')
NODE_PATTERNS = [
    (re.compile(r'^(\w+(?:-\w+)*)\(\((.+?)\)\)'), 'circle'),
    (re.compile(r'^(\w+(?:-\w+)*)\[(.+?)\]'), 'rectangle'),
    (re.compile(r'^(\w+(?:-\w+)*)\((.+?)\)'), 'rounded'),
    (re.compile(r'^(\w+(?:-\w+)*)\{(.+?)\}'), 'diamond'),
]
BARE_NODE_REGEX = re.compile(r'^(\w+(?:-\w+)*)')
IGNORED_STATEMENTS = re.compile(
    r'^(classDef|class|style|linkStyle|click|subgraph|direction)\b|^end$', re.IGNORECASE
)
BREAK_TAG = re.compile(r'<br\s*/?>', re.IGNORECASE)

# Natural-size geometry, in pixels at scale 1
NODE_PAD_X = 16
NODE_PAD_Y = 10
MIN_NODE_WIDTH = 60
RANK_GAP = 60
NODE_GAP = 40
MARGIN = 10
STROKE_WIDTH = 2
ARROW_LENGTH = 10
ARROW_HALF_WIDTH = 5
DASH = (6, 4)
LABEL_PAD = 4


class FlowchartParseError(ValueError):
    """Raised when flowchart source cannot be parsed."""


@dataclass
class FlowNode:
    id: str
    label: str
    shape: str = "rectangle"


@dataclass
class FlowEdge:
    source: str
    target: str
    label: Optional[str] = None
    style: str = "solid"   # solid | dotted | thick
    arrow_end: bool = True
    arrow_start: bool = False


@dataclass
class Flowchart:
    direction: str
    nodes: Dict[str, FlowNode] = field(default_factory=dict)
    edges: List[FlowEdge] = field(default_factory=list)


@dataclass
class PlacedNode:
    node: FlowNode
    cx: float
    cy: float
    width: float
    height: float
    lines: List[str]


@dataclass
class FlowLayout:
    """Vector geometry at natural size."""
    width: int
    height: int
    nodes: Dict[str, PlacedNode]
    edges: List[FlowEdge]
    font_size: int
    label_boxes: List[Tuple[float, float, float, float]] = field(default_factory=list)


def _clean_label(label: str) -> str:
    label = label.strip()
    if len(label) >= 2 and label[0] == label[-1] and label[0] in "\"'":
        label = label[1:-1]
    return BREAK_TAG.sub("\n", label)


def _arrow_style(op: str) -> str:
    if "." in op:
        return "dotted"
    if op.startswith("="):
        return "thick"
    return "solid"


def _consume_node(text: str, chart: Flowchart) -> Optional[Tuple[str, str]]:
    for regex, shape in NODE_PATTERNS:
        m = regex.match(text)
        if m:
            node_id = m.group(1)
            label = _clean_label(m.group(2))
            existing = chart.nodes.get(node_id)
            if existing is None or existing.label == existing.id:
                chart.nodes[node_id] = FlowNode(node_id, label, shape)
            return node_id, text[m.end():]

    m = BARE_NODE_REGEX.match(text)
    if m:
        node_id = m.group(1)
        chart.nodes.setdefault(node_id, FlowNode(node_id, node_id))
        return node_id, text[m.end():]
    return None


def _consume_group(text: str, chart: Flowchart) -> Optional[Tuple[List[str], str]]:
    first = _consume_node(text, chart)
    if first is None:
        return None
    ids = [first[0]]
    remaining = first[1].strip()
    while remaining.startswith("&"):
        nxt = _consume_node(remaining[1:].strip(), chart)
        if nxt is None:
            break
        ids.append(nxt[0])
        remaining = nxt[1].strip()
    return ids, remaining


def _parse_statement(statement: str, chart: Flowchart) -> None:
    group = _consume_group(statement, chart)
    if group is None:
        raise FlowchartParseError(f"Cannot parse statement: '{statement}'")
    prev_ids, remaining = group

    while remaining:
        m = ARROW_REGEX.match(remaining)
        if not m:
            raise FlowchartParseError(f"Unexpected text '{remaining}' in statement '{statement}'")
        op = m.group(2)
        label = (m.group(3) or "").strip() or None
        remaining = remaining[m.end():].strip()

        nxt = _consume_group(remaining, chart)
        if nxt is None:
            raise FlowchartParseError(f"Edge without target in statement '{statement}'")
        next_ids, remaining = nxt

        for src in prev_ids:
            for tgt in next_ids:
                chart.edges.append(FlowEdge(
                    source=src,
                    target=tgt,
                    label=_clean_label(label) if label else None,
                    style=_arrow_style(op),
                    arrow_end=op.endswith(">"),
                    arrow_start=bool(m.group(1)),
                ))
        prev_ids = next_ids


def parse_flowchart(source: str) -> Flowchart:
    """
    Parse flowchart source.

    Raises:
        FlowchartParseError: On a missing header, unknown syntax or no nodes
    """
    statements = [
        s.strip() for s in re.split(r'[\n;]', source)
        if s.strip() and not s.strip().startswith('%%')
    ]
    if not statements:
        raise FlowchartParseError("Empty diagram")

    header = HEADER_REGEX.match(statements[0])
    if not header:
        raise FlowchartParseError(
            f"Invalid diagram header '{statements[0]}', expected e.g. 'graph TD' or 'flowchart LR'"
        )
    direction = header.group(1).upper()
    chart = Flowchart(direction="TD" if direction == "TB" else direction)

    for statement in statements[1:]:
        if IGNORED_STATEMENTS.match(statement):
            continue
        _parse_statement(statement, chart)

    if not chart.nodes:
        raise FlowchartParseError("Diagram has no nodes")
    return chart


def _rank_nodes(chart: Flowchart) -> List[List[str]]:
    """Longest-path layering; nodes on a cycle share a layer."""
    graph = nx.DiGraph()
    graph.add_nodes_from(chart.nodes)
    graph.add_edges_from((e.source, e.target) for e in chart.edges if e.source != e.target)

    condensed = nx.condensation(graph)
    rank: Dict[int, int] = {}
    for component in nx.topological_sort(condensed):
        preds = list(condensed.predecessors(component))
        rank[component] = max((rank[p] + 1 for p in preds), default=0)

    order = {node_id: i for i, node_id in enumerate(chart.nodes)}
    layers: List[List[str]] = [[] for _ in range(max(rank.values()) + 1)]
    for node_id in chart.nodes:
        layers[rank[condensed.graph["mapping"][node_id]]].append(node_id)

    # Barycenter sweeps to reduce crossings
    undirected = graph.to_undirected()
    for _ in range(2):
        for i in list(range(1, len(layers))) + list(range(len(layers) - 2, -1, -1)):
            neighbors = layers[i - 1] if i > 0 else []
            neighbors = neighbors + (layers[i + 1] if i + 1 < len(layers) else [])
            position = {n: p for p, n in enumerate(neighbors)}

            def barycenter(node_id, position=position):
                linked = [position[n] for n in undirected.neighbors(node_id) if n in position]
                if not linked:
                    return order[node_id]
                return sum(linked) / len(linked)

            layers[i].sort(key=lambda n: (barycenter(n), order[n]))
    return layers


def _node_size(lines: List[str], font: FontType, shape: str) -> Tuple[float, float]:
    text_w = max((font.getlength(line) for line in lines), default=0)
    text_h = line_height(font) * max(1, len(lines))
    w = max(MIN_NODE_WIDTH, text_w + 2 * NODE_PAD_X)
    h = text_h + 2 * NODE_PAD_Y
    if shape == "diamond":
        return math.ceil(w * 1.4), math.ceil(h * 1.6)
    if shape == "circle":
        d = math.ceil(max(w, h))
        return d, d
    return math.ceil(w), math.ceil(h)


def layout_flowchart(chart: Flowchart, font: FontType, font_size: int) -> FlowLayout:
    """Place nodes layer by layer at natural (scale 1) size."""
    layers = _rank_nodes(chart)
    horizontal = chart.direction in ("LR", "RL")

    sizes = {}
    lines_by_id = {}
    for node_id, node in chart.nodes.items():
        lines = node.label.split("\n")
        lines_by_id[node_id] = lines
        sizes[node_id] = _node_size(lines, font, node.shape)

    def along(size):   # extent along the rank axis
        return size[0] if horizontal else size[1]

    def across(size):  # extent across the rank axis
        return size[1] if horizontal else size[0]

    thickness = [max(along(sizes[n]) for n in layer) for layer in layers]
    spans = [sum(across(sizes[n]) for n in layer) + NODE_GAP * (len(layer) - 1) for layer in layers]
    widest = max(spans)

    if chart.direction in ("BT", "RL"):
        layers = list(reversed(layers))
        thickness = list(reversed(thickness))
        spans = list(reversed(spans))

    placed: Dict[str, PlacedNode] = {}
    rank_pos = 0.0
    for layer, thick, span in zip(layers, thickness, spans):
        cross_pos = (widest - span) / 2
        for node_id in layer:
            w, h = sizes[node_id]
            a = rank_pos + thick / 2
            c = cross_pos + across(sizes[node_id]) / 2
            cx, cy = (a, c) if horizontal else (c, a)
            placed[node_id] = PlacedNode(chart.nodes[node_id], cx, cy, w, h, lines_by_id[node_id])
            cross_pos += across(sizes[node_id]) + NODE_GAP
        rank_pos += thick + RANK_GAP

    label_boxes = []
    for edge in chart.edges:
        if not edge.label:
            continue
        a, b = placed[edge.source], placed[edge.target]
        mx, my = (a.cx + b.cx) / 2, (a.cy + b.cy) / 2
        lw = max(font.getlength(line) for line in edge.label.split("\n")) + 2 * LABEL_PAD
        lh = line_height(font) * len(edge.label.split("\n")) + 2 * LABEL_PAD
        label_boxes.append((mx - lw / 2, my - lh / 2, mx + lw / 2, my + lh / 2))

    # Normalize so everything sits inside a margin
    boxes = [(p.cx - p.width / 2, p.cy - p.height / 2, p.cx + p.width / 2, p.cy + p.height / 2)
             for p in placed.values()] + label_boxes
    min_x = min(b[0] for b in boxes)
    min_y = min(b[1] for b in boxes)
    max_x = max(b[2] for b in boxes)
    max_y = max(b[3] for b in boxes)
    dx, dy = MARGIN - min_x, MARGIN - min_y
    for p in placed.values():
        p.cx += dx
        p.cy += dy
    label_boxes = [(x0 + dx, y0 + dy, x1 + dx, y1 + dy) for x0, y0, x1, y1 in label_boxes]

    return FlowLayout(
        width=int(math.ceil(max_x - min_x + 2 * MARGIN)),
        height=int(math.ceil(max_y - min_y + 2 * MARGIN)),
        nodes=placed,
        edges=chart.edges,
        font_size=font_size,
        label_boxes=label_boxes,
    )


def _boundary_point(node: PlacedNode, toward: Tuple[float, float]) -> Tuple[float, float]:
    """Where the segment from the node center toward a point leaves the node."""
    dx, dy = toward[0] - node.cx, toward[1] - node.cy
    if dx == 0 and dy == 0:
        return node.cx, node.cy
    hw, hh = node.width / 2, node.height / 2
    if node.node.shape == "circle":
        t = hw / math.hypot(dx, dy)
    elif node.node.shape == "diamond":
        t = 1 / (abs(dx) / hw + abs(dy) / hh)
    else:
        t = min(hw / abs(dx) if dx else math.inf, hh / abs(dy) if dy else math.inf)
    t = min(t, 1.0)
    return node.cx + dx * t, node.cy + dy * t


def _dashed_line(draw, start, end, fill, width, dash, gap):
    length = math.hypot(end[0] - start[0], end[1] - start[1])
    if length == 0:
        return
    ux, uy = (end[0] - start[0]) / length, (end[1] - start[1]) / length
    pos = 0.0
    while pos < length:
        stop = min(pos + dash, length)
        draw.line([(start[0] + ux * pos, start[1] + uy * pos),
                   (start[0] + ux * stop, start[1] + uy * stop)], fill=fill, width=width)
        pos = stop + gap


def _arrowhead(draw, tip, tail, fill, length, half_width):
    dx, dy = tip[0] - tail[0], tip[1] - tail[1]
    dist = math.hypot(dx, dy)
    if dist == 0:
        return
    ux, uy = dx / dist, dy / dist
    bx, by = tip[0] - ux * length, tip[1] - uy * length
    draw.polygon([
        tip,
        (bx - uy * half_width, by + ux * half_width),
        (bx + uy * half_width, by - ux * half_width),
    ], fill=fill)


def _draw_centered_lines(draw, lines, cx, cy, font, fill):
    lh = line_height(font)
    top = cy - lh * len(lines) / 2
    for i, line in enumerate(lines):
        draw.text((cx - font.getlength(line) / 2, top + i * lh), line, fill=fill, font=font)


def paint_flowchart(layout: FlowLayout, scale: float, fonts: FontManager,
                    families: List[str], foreground: str, background: str) -> Image.Image:
    """
    Paint the layout at a uniform scale onto a transparent image.

    Returns:
        RGBA image of size ceil(natural size * scale)
    """
    width = max(1, int(math.ceil(layout.width * scale - 1e-6)))
    height = max(1, int(math.ceil(layout.height * scale - 1e-6)))
    img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)

    fg = parse_color(foreground)
    bg = parse_color(background)
    font = fonts.pil_font(families, max(1, round(layout.font_size * scale)))
    stroke = max(1, round(STROKE_WIDTH * scale))

    def s(point):
        return point[0] * scale, point[1] * scale

    for edge in layout.edges:
        a, b = layout.nodes[edge.source], layout.nodes[edge.target]
        if edge.source == edge.target:
            continue
        start = s(_boundary_point(a, (b.cx, b.cy)))
        end = s(_boundary_point(b, (a.cx, a.cy)))
        width = stroke * 2 if edge.style == "thick" else stroke
        if edge.style == "dotted":
            _dashed_line(draw, start, end, fg, width, DASH[0] * scale, DASH[1] * scale)
        else:
            draw.line([start, end], fill=fg, width=width)
        if edge.arrow_end:
            _arrowhead(draw, end, start, fg, ARROW_LENGTH * scale, ARROW_HALF_WIDTH * scale)
        if edge.arrow_start:
            _arrowhead(draw, start, end, fg, ARROW_LENGTH * scale, ARROW_HALF_WIDTH * scale)

    labelled = [e for e in layout.edges if e.label]
    for edge, box in zip(labelled, layout.label_boxes):
        x0, y0 = s(box[:2])
        x1, y1 = s(box[2:])
        if bg[3] > 0:
            draw.rectangle([x0, y0, x1, y1], fill=bg)
        _draw_centered_lines(draw, edge.label.split("\n"), (x0 + x1) / 2, (y0 + y1) / 2, font, fg)

    for placed in layout.nodes.values():
        cx, cy = s((placed.cx, placed.cy))
        hw, hh = placed.width * scale / 2, placed.height * scale / 2
        box = [cx - hw, cy - hh, cx + hw, cy + hh]
        fill = bg if bg[3] > 0 else None
        shape = placed.node.shape
        if shape == "circle":
            draw.ellipse(box, outline=fg, fill=fill, width=stroke)
        elif shape == "diamond":
            draw.polygon([(cx, cy - hh), (cx + hw, cy), (cx, cy + hh), (cx - hw, cy)],
                         outline=fg, fill=fill, width=stroke)
        elif shape == "rounded":
            draw.rounded_rectangle(box, radius=int(min(hw, hh) * 0.5), outline=fg, fill=fill, width=stroke)
        else:
            draw.rectangle(box, outline=fg, fill=fill, width=stroke)
        _draw_centered_lines(draw, placed.lines, cx, cy, font, fg)

    return img
