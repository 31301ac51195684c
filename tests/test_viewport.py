"""
Tests for the pan/zoom viewport.
"""

import pytest

from studymind.config import ViewportConfig
from studymind.layout import compute_layout
from studymind.viewport import ZOOM_IN, ZOOM_OUT, PanCoalescer, Viewport


@pytest.fixture
def viewport():
    return Viewport(1000, 800)


@pytest.fixture
def layout(sample_tree):
    return compute_layout(sample_tree)


class TestTransforms:
    """Screen = world * zoom + pan."""

    def test_identity_by_default(self, viewport):
        assert viewport.screen_to_world(120, 45) == (120, 45)

    def test_round_trip(self, viewport):
        viewport.pan(10, 20)
        viewport.set_zoom_at_point(0, 0, 1.5)
        wx, wy = viewport.screen_to_world(300, 200)
        assert viewport.world_to_screen(wx, wy) == pytest.approx((300, 200))

    def test_pan_accumulates(self, viewport):
        viewport.pan(10, -5)
        viewport.pan(2, 3)
        assert (viewport.pan_x, viewport.pan_y) == (12, -2)

    def test_reset(self, viewport):
        viewport.pan(10, 10)
        viewport.zoom_at_point(0, 0, ZOOM_IN)
        viewport.reset()
        assert (viewport.pan_x, viewport.pan_y, viewport.zoom) == (0, 0, 1)


class TestZoom:
    """Zooming around a fixed point."""

    def test_world_point_under_cursor_stays_put(self, viewport):
        viewport.pan(-37, 12)
        before = viewport.screen_to_world(640, 210)
        assert viewport.zoom_at_point(640, 210, ZOOM_IN)
        assert viewport.screen_to_world(640, 210) == pytest.approx(before)
        assert viewport.zoom == pytest.approx(1.1)

    def test_zoom_out_divides(self, viewport):
        viewport.zoom_at_point(0, 0, ZOOM_OUT)
        assert viewport.zoom == pytest.approx(1 / 1.1)

    def test_zoom_is_clamped_high(self, viewport):
        for _ in range(20):
            viewport.zoom_at_point(500, 400, ZOOM_IN)
        assert viewport.zoom == 2.0
        assert not viewport.zoom_at_point(500, 400, ZOOM_IN)

    def test_zoom_is_clamped_low(self, viewport):
        for _ in range(60):
            viewport.zoom_at_point(500, 400, ZOOM_OUT)
        assert viewport.zoom == pytest.approx(0.1)
        assert not viewport.zoom_at_point(500, 400, ZOOM_OUT)

    def test_button_zoom_keeps_target_in_place(self, viewport, layout):
        target = layout.by_id["e"]
        before = viewport.world_to_screen(target.x, target.y)
        assert viewport.zoom_step(ZOOM_IN, target)
        assert viewport.zoom == pytest.approx(1.2)
        assert viewport.world_to_screen(target.x, target.y) == pytest.approx(before)

    def test_button_zoom_defaults_to_view_center(self, viewport):
        center = viewport.screen_to_world(500, 400)
        viewport.zoom_step(ZOOM_OUT)
        assert viewport.screen_to_world(500, 400) == pytest.approx(center)

    def test_custom_limits(self):
        viewport = Viewport(100, 100, ViewportConfig(min_zoom=0.5, max_zoom=1.5))
        assert viewport.set_zoom_at_point(0, 0, 10)
        assert viewport.zoom == 1.5


class TestFit:
    """Fitting the whole map into the view."""

    def test_fit_never_zooms_past_100_percent(self, viewport, layout):
        assert viewport.fit_to_content(layout.nodes)
        assert viewport.zoom == 1.0
        min_x, min_y, max_x, max_y = layout.bounds()
        center = viewport.world_to_screen((min_x + max_x) / 2, (min_y + max_y) / 2)
        assert center == pytest.approx((500, 400))

    def test_fit_shrinks_to_padded_view(self, layout):
        viewport = Viewport(400, 300)
        viewport.fit_to_content(layout.nodes)
        min_x, min_y, max_x, max_y = layout.bounds()
        assert viewport.zoom == pytest.approx((400 - 100) / (max_x - min_x))

    def test_fit_with_nothing_to_show(self, viewport):
        assert not viewport.fit_to_content([])
        assert viewport.zoom == 1.0

    def test_fit_before_size_is_known(self, layout):
        assert not Viewport().fit_to_content(layout.nodes)

    def test_center_on(self, viewport):
        viewport.center_on(100, -50)
        assert viewport.world_to_screen(100, -50) == (500, 400)


class TestVisibleNodes:
    """Virtualized drawing."""

    def test_only_nodes_near_the_view(self, viewport, layout):
        visible = {pn.id for pn in viewport.visible_nodes(layout.nodes)}
        assert visible == {"root", "g", "g1", "g2", "e"}

    def test_panning_brings_nodes_into_view(self, viewport, layout):
        viewport.pan(400, 0)
        assert len(viewport.visible_nodes(layout.nodes)) == len(layout)

    def test_margin_extends_the_view(self, viewport, layout):
        viewport.pan(150, 0)
        visible = {pn.id for pn in viewport.visible_nodes(layout.nodes)}
        assert "a" in visible

    def test_no_size_no_nodes(self, layout):
        assert Viewport().visible_nodes(layout.nodes) == []


class TestPanCoalescer:
    """One pan per frame."""

    def test_deltas_are_summed(self, viewport):
        coalescer = PanCoalescer()
        coalescer.add(3, 4)
        coalescer.add(-1, 6)
        assert coalescer.pending
        assert coalescer.flush(viewport)
        assert (viewport.pan_x, viewport.pan_y) == (2, 10)
        assert not coalescer.pending

    def test_flush_without_deltas(self, viewport):
        assert not PanCoalescer().flush(viewport)

    def test_clear_drops_deltas(self, viewport):
        coalescer = PanCoalescer()
        coalescer.add(50, 50)
        coalescer.clear()
        assert not coalescer.flush(viewport)
        assert viewport.pan_x == 0
