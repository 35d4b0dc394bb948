import sys
import os
import logging
import shutil
import tempfile
import unittest

script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
sys.path.insert(0, project_root)

from avatar_retarget.core.config import Config
from avatar_retarget.core.logging import ColoredFormatter, get_logger, set_component_level, setup_logging
from avatar_retarget.core.timing import TickClock, TickTimer
from avatar_retarget.motion.bindings import CompositionOrder
from avatar_retarget.motion.retarget_engine import RetargetEngine

CUSTOM_CONFIG = """
rig:
  bone_prefix: "mixamorig:"
retarget:
  composition_order: pre_multiply_global_then_raw
  axis_remap: true
  blend_factor: 0.25
bindings:
  - {joint: HEAD, bone: HEAD, correction_euler_deg: [0, 180, 0]}
  - {joint: NECK, bone: NECK}
"""

INVALID_CONFIG = """
retarget:
  composition_order: raw_then_correction
  axis_remap: true
"""


class TestConfig(unittest.TestCase):
    def setUp(self):
        Config.reset_instance()
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        Config.reset_instance()
        shutil.rmtree(self.tmp_dir)

    def write_config(self, text):
        path = os.path.join(self.tmp_dir, "config.yaml")
        with open(path, "w") as f:
            f.write(text)
        return path

    def test_project_config(self):
        config = Config(os.path.join(project_root, "config.yaml"))
        self.assertEqual(config.get("rig.bone_prefix"), "mixamorig6")
        self.assertEqual(config.get("retarget.blend_factor"), 0.4)
        self.assertEqual(config.get("missing.key", 5), 5)

        engine = RetargetEngine.from_config(config)
        self.assertEqual(len(engine.bindings), 21)
        self.assertIs(engine.settings.composition_order, CompositionOrder.PRE_MULTIPLY_GLOBAL_THEN_RAW)
        self.assertEqual(len(engine.rig), 22)

    def test_shared_instance(self):
        config = Config(self.write_config(CUSTOM_CONFIG))
        self.assertIs(Config(), config)
        config.set("retarget.mirror", True)
        self.assertTrue(Config().get("retarget.mirror"))

    def test_custom_config(self):
        config = Config(self.write_config(CUSTOM_CONFIG))
        engine = RetargetEngine.from_config(config)
        self.assertEqual(len(engine.bindings), 2)
        self.assertIn("mixamorig:Head", engine.bindings)
        self.assertTrue(engine.settings.axis_remap)
        self.assertEqual(engine.smoother.blend_factor, 0.25)

    def test_invalid_composition(self):
        config = Config(self.write_config(INVALID_CONFIG))
        with self.assertRaises(ValueError):
            RetargetEngine.from_config(config)

    def test_reload(self):
        path = self.write_config(CUSTOM_CONFIG)
        config = Config(path)
        config.set("retarget.blend_factor", 0.9)
        config.reload()
        self.assertEqual(config.get("retarget.blend_factor"), 0.25)


class TestLogging(unittest.TestCase):
    def test_namespaced_loggers(self):
        setup_logging(level="DEBUG")
        logger = get_logger("motion.engine")
        self.assertEqual(logger.name, "retarget.motion.engine")
        self.assertEqual(logging.getLogger("retarget").level, logging.DEBUG)

    def test_component_levels(self):
        setup_logging(level="DEBUG", component_levels={"motion.flip_guard": "warning"})
        flip_logger = get_logger("motion.flip_guard")
        self.assertFalse(flip_logger.isEnabledFor(logging.DEBUG))
        self.assertTrue(get_logger("motion.resolver").isEnabledFor(logging.DEBUG))
        set_component_level("motion.flip_guard", logging.NOTSET)
        self.assertTrue(flip_logger.isEnabledFor(logging.DEBUG))

    def test_unknown_level(self):
        with self.assertRaises(ValueError):
            set_component_level("motion.engine", "LOUD")

    def test_colored_formatter_leaves_record_plain(self):
        record = logging.LogRecord("retarget.x", logging.INFO, __file__, 1, "msg", None, None)
        text = ColoredFormatter("%(levelname)s %(name)s %(message)s").format(record)
        self.assertIn("\033[", text)
        self.assertEqual(record.levelname, "INFO")
        self.assertEqual(record.name, "retarget.x")


class TestTiming(unittest.TestCase):
    def test_tick_timer(self):
        timer = TickTimer(budget_ms=1000.0)
        timer.start()
        elapsed = timer.stop()
        self.assertGreaterEqual(elapsed, 0.0)
        self.assertFalse(timer.last_over_budget)
        self.assertEqual(timer.over_budget_count, 0)

    def test_tick_clock_pause(self):
        clock = TickClock(target_fps=100.0)
        clock.start()
        clock.tick()
        clock.pause()
        with self.assertRaises(RuntimeError):
            clock.tick()
        clock.resume()
        clock.tick()
        self.assertEqual(clock.tick_count, 2)
        self.assertAlmostEqual(clock.target_tick_duration, 0.01)


if __name__ == "__main__":
    unittest.main()
