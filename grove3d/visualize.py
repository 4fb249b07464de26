"""Functions for generating interactive visualizations of procedural trees."""

from __future__ import annotations

import k3d
import numpy as np
import seaborn as sns
from ipywidgets import (
    Accordion,
    Button,
    FloatSlider,
    HBox,
    IntSlider,
    Layout,
    VBox,
    interactive_output,
)

from grove3d.generation.tree import TreeGenerator
from grove3d.materials import BARK, GRASS, LEAF, MATERIAL_COUNTS
from grove3d.models.parameters import (
    INTEGER_FIELDS,
    PARAMETER_RANGES,
    SEED_RANGE,
    TreeParameters,
    random_tree_parameters,
    with_random_seed,
)
from grove3d.models.records import FinishedMesh, MaterialHandle
from grove3d.utils.geometry import merge_leaf_quads

SLIDER_LABELS = {
    "max_vertices": "Max Vertices",
    "num_sides": "Number of Sides",
    "trunk_radius": "Trunk Radius",
    "radius_step": "Radius Step",
    "branch_tip_radius": "Branch Tip Radius",
    "branch_roundness": "Branch Roundness",
    "segment_length": "Branch Segment Length",
    "twist": "Branch Twist",
    "branch_probability": "Branch Probability",
    "max_leaves": "Max Leaves",
}

_PALETTES = {BARK: "YlOrBr", LEAF: "Greens", GRASS: "summer"}

DEFAULT_COLORS = {BARK: 0x8B4513, LEAF: 0x2CA02C, GRASS: 0x6B8E23}


def material_color(material: MaterialHandle | None, category: str) -> int:
    """Picks a display color for a material from a palette of its category."""
    if material is None:
        return DEFAULT_COLORS[category]
    palette = sns.color_palette(_PALETTES[category], MATERIAL_COUNTS[category])
    return _rgb_to_k3d_int(palette[material.index - 1])


class K3DMeshSink:
    """Mesh sink that keeps a k3d plot in sync with a tree's finished mesh."""

    def __init__(self, plot: k3d.Plot | None = None, color: int = DEFAULT_COLORS[BARK]):
        self.plot = plot if plot is not None else k3d.plot(grid_visible=False, height=600)
        self.bark = k3d.mesh(
            vertices=np.zeros((3, 3), dtype=np.float32),
            indices=np.array([[0, 1, 2]], dtype=np.uint32),
            color=color,
            wireframe=False,
        )
        self.plot += self.bark

    def __call__(self, mesh: FinishedMesh) -> None:
        with self.plot.hold_sync():
            self.bark.vertices = np.asarray(mesh.vertices, dtype=np.float32)
            self.bark.indices = np.asarray(mesh.triangles, dtype=np.uint32)


def plot_tree(tree: TreeGenerator, leaf_scale: float = 0.25) -> k3d.Plot:
    """Plots a generated tree with its leaves and returns the plot."""
    if tree.mesh is None:
        tree.generate()

    plot = k3d.plot(grid_visible=False, height=700)
    plot += k3d.mesh(
        vertices=np.asarray(tree.mesh.vertices, dtype=np.float32),
        indices=np.asarray(tree.mesh.triangles, dtype=np.uint32),
        color=material_color(tree.bark_material, BARK),
        wireframe=False,
    )

    leaf_vertices, leaf_triangles = merge_leaf_quads(
        tree.active_leaves(), scale=leaf_scale
    )
    if len(leaf_vertices):
        plot += k3d.mesh(
            vertices=leaf_vertices.astype(np.float32),
            indices=leaf_triangles.astype(np.uint32),
            color=material_color(tree.leaves.material, LEAF),
            side="double",
        )

    _add_platform(plot, tree)
    return plot


def _add_platform(plot: k3d.Plot, tree: TreeGenerator, size: float = 10.0) -> None:
    """Adds the flat grass platform the tree stands on."""
    flat = np.zeros((50, 50), dtype=np.float32)
    plot += k3d.surface(
        flat,
        xmin=-size,
        xmax=size,
        ymin=-size,
        ymax=size,
        color=material_color(tree.platform_material, GRASS),
        opacity=0.6,
        wireframe=False,
    )


def build_tree_controls(params: TreeParameters) -> tuple[Accordion, dict]:
    """Builds the User Interface (UI) and controls for the tree parameters."""
    controls = {}
    for name, (low, high) in PARAMETER_RANGES.items():
        value = getattr(params, name)
        if name in INTEGER_FIELDS:
            controls[name] = IntSlider(
                value=value, min=int(low), max=int(high), description=SLIDER_LABELS[name]
            )
        else:
            controls[name] = FloatSlider(
                value=value,
                min=low,
                max=high,
                step=(high - low) / 100,
                description=SLIDER_LABELS[name],
            )
    controls["seed"] = IntSlider(
        value=params.seed, min=SEED_RANGE[0], max=SEED_RANGE[1] - 1, description="Seed"
    )

    # Group the parameter widgets into groups of controls
    mesh_controls = VBox(
        [controls["seed"], controls["max_vertices"], controls["num_sides"]]
    )
    radius_controls = VBox(
        [
            controls["trunk_radius"],
            controls["radius_step"],
            controls["branch_tip_radius"],
            controls["branch_roundness"],
        ]
    )
    branch_controls = VBox(
        [
            controls["segment_length"],
            controls["twist"],
            controls["branch_probability"],
        ]
    )
    leaf_controls = VBox([controls["max_leaves"]])

    ui = Accordion([mesh_controls, radius_controls, branch_controls, leaf_controls])
    ui.set_title(0, "Mesh")
    ui.set_title(1, "Branch Radius")
    ui.set_title(2, "Branching")
    ui.set_title(3, "Leaves")

    return ui, controls


def plot_tree_interactive(tree: TreeGenerator | None = None) -> VBox:
    """Plots a tree with k3d next to sliders that regenerate it when moved."""
    tree = tree or TreeGenerator()
    ui, controls = build_tree_controls(tree.params)

    sink = K3DMeshSink(color=material_color(tree.bark_material, BARK))
    sink.plot.layout = Layout(
        width="100%",
        min_width="0px",
        height="600px",
        flex="1 1 auto",
    )
    tree.sink = sink

    syncing = False

    def update(**values):
        if syncing:
            return
        if values["branch_tip_radius"] >= values["trunk_radius"]:
            values["branch_tip_radius"] = values["trunk_radius"] / 2
        tree.update_tree(TreeParameters.model_validate(values))

    def set_controls(params: TreeParameters) -> None:
        """Moves the sliders to `params` without regenerating once per slider."""
        nonlocal syncing
        syncing = True
        try:
            for name, widget in controls.items():
                widget.value = getattr(params, name)
        finally:
            syncing = False

    def random_tree(_button):
        params = random_tree_parameters(tree.stream)
        set_controls(params)
        tree.update_tree(params)
        tree.assign_materials()
        sink.bark.color = material_color(tree.bark_material, BARK)

    def random_seed(_button):
        params = with_random_seed(tree.params, tree.stream)
        set_controls(params)
        tree.update_tree(params)

    random_tree_button = Button(description="Random Tree")
    random_tree_button.on_click(random_tree)
    random_seed_button = Button(description="Random Seed")
    random_seed_button.on_click(random_seed)

    out = interactive_output(update, controls)
    # the sliders drive `update` through this output, which has nothing to show
    out.layout.display = "none"

    update(**{k: w.value for k, w in controls.items()})

    return VBox(
        [
            HBox(
                [VBox([ui, random_tree_button, random_seed_button]), sink.plot],
                layout=Layout(
                    width="100%",
                    display="flex",
                    align_items="stretch",
                    justify_content="space-between",
                    gap="12px",
                ),
            ),
            out,
        ],
        layout=Layout(width="100%"),
    )


def _rgb_to_k3d_int(rgb_float_triplet) -> int:
    r, g, b = (int(255 * c) for c in rgb_float_triplet)
    return (r << 16) + (g << 8) + b
