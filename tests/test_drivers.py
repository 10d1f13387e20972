"""Tests for the image and cli drivers."""

import sys

import pytest
from PIL import Image

from core.drivers import CLIDriver, ImageDriver, default_drivers
from core.drivers.cli import render_template
from core.drivers.image import HANDLERS
from core.errors import DriverError
from core.executor import PipelineExecutor
from skills.registry import SkillRegistry
from skills.schema import ExecutorSpec, Skill, SkillSource

from helpers import write_skill

COPY_SCRIPT = "import shutil, sys; shutil.copyfile(sys.argv[1], sys.argv[2])"


def _image_skill(handler, output_type=""):
    return Skill(
        id=handler,
        name=handler.title(),
        driver="image",
        output_type=output_type,
        executor=ExecutorSpec(type="native", handler=handler),
    )


def _cli_skill(args, permissions=("tools.exec",), source=SkillSource.CORE_EMBEDDED,
               command=sys.executable, timeout_ms=0):
    return Skill(
        id="run",
        name="Run",
        executor=ExecutorSpec(type="cli", command=command, args=tuple(args), timeout_ms=timeout_ms),
        permissions=tuple(permissions),
        source=source,
    )


@pytest.fixture
def rgba_png(tmp_path):
    path = tmp_path / "alpha.png"
    Image.new("RGBA", (40, 20), (10, 20, 30, 128)).save(path)
    return path


class TestDefaultDrivers:
    """Tests for the static driver table."""

    def test_keys(self):
        """image and cli are registered by tag."""
        drivers = default_drivers()
        assert set(drivers) == {"image", "cli"}
        assert isinstance(drivers["image"], ImageDriver)
        assert isinstance(drivers["cli"], CLIDriver)


class TestImageDriver:
    """Tests for the Pillow driver."""

    def test_resize(self, photo_jpg, tmp_path):
        """resize scales by percent and writes the output."""
        out = tmp_path / "out.jpg"
        ImageDriver().execute(photo_jpg, out, _image_skill("resize"), {"percent": 20})
        with Image.open(out) as img:
            assert img.size == (100, 100)

    def test_resize_never_below_one_pixel(self, photo_jpg, tmp_path):
        """Tiny percentages still produce a 1px image."""
        out = tmp_path / "out.jpg"
        ImageDriver().execute(photo_jpg, out, _image_skill("resize"), {"percent": 0.01})
        with Image.open(out) as img:
            assert img.size == (1, 1)

    def test_resize_rejects_non_positive(self, photo_jpg, tmp_path):
        """percent <= 0 is a driver error."""
        with pytest.raises(DriverError, match="greater than 0"):
            ImageDriver().execute(photo_jpg, tmp_path / "out.jpg", _image_skill("resize"), {"percent": 0})

    def test_grayscale(self, photo_jpg, tmp_path):
        """grayscale produces a single-band image."""
        out = tmp_path / "out.jpg"
        ImageDriver().execute(photo_jpg, out, _image_skill("grayscale"), {})
        with Image.open(out) as img:
            assert img.mode == "L"

    def test_blur_keeps_size(self, photo_jpg, tmp_path):
        """blur does not change dimensions."""
        out = tmp_path / "out.jpg"
        ImageDriver().execute(photo_jpg, out, _image_skill("blur"), {"radius": 3})
        with Image.open(out) as img:
            assert img.size == (500, 500)

    def test_alpha_flattened_for_jpeg(self, rgba_png, tmp_path):
        """RGBA inputs are converted before writing JPEG."""
        out = tmp_path / "out.jpg"
        ImageDriver().execute(rgba_png, out, _image_skill("convert_to_jpeg", ".jpg"), {})
        with Image.open(out) as img:
            assert img.format == "JPEG"
            assert img.mode == "RGB"

    def test_compress_quality_clamped(self, photo_jpg, tmp_path):
        """Very low quality is clamped rather than rejected."""
        low = tmp_path / "low.jpg"
        floor = tmp_path / "floor.jpg"
        ImageDriver().execute(photo_jpg, low, _image_skill("compress"), {"quality": 1})
        ImageDriver().execute(photo_jpg, floor, _image_skill("compress"), {"quality": 40})
        assert low.read_bytes() == floor.read_bytes()

    def test_handler_falls_back_to_skill_id(self, photo_jpg, tmp_path):
        """An empty handler resolves by skill id."""
        skill = Skill(id="grayscale", name="G", driver="image", executor=ExecutorSpec(type="native"))
        out = tmp_path / "out.png"
        ImageDriver().execute(photo_jpg, out, skill, {})
        with Image.open(out) as img:
            assert img.mode == "L"

    def test_unknown_handler(self, photo_jpg, tmp_path):
        """Unknown handlers raise DriverError."""
        with pytest.raises(DriverError, match="unsupported image skill"):
            ImageDriver().execute(photo_jpg, tmp_path / "o.jpg", _image_skill("sepia"), {})

    def test_handler_value_error_wrapped(self, photo_jpg, tmp_path, monkeypatch):
        """Pillow ValueErrors surface as DriverError."""
        def explode(img, params):
            raise ValueError("radius must be >= 0")

        monkeypatch.setitem(HANDLERS, "explode", explode)
        with pytest.raises(DriverError, match="image skill 'explode' failed: radius must be >= 0"):
            ImageDriver().execute(photo_jpg, tmp_path / "o.jpg", _image_skill("explode"), {})
        assert not (tmp_path / "o.jpg").exists()

    def test_not_an_image(self, tmp_path):
        """Unreadable inputs raise DriverError."""
        src = tmp_path / "notes.jpg"
        src.write_text("not an image")
        with pytest.raises(DriverError, match="cannot open image"):
            ImageDriver().execute(src, tmp_path / "o.jpg", _image_skill("grayscale"), {})

    def test_input_untouched_and_progress(self, photo_jpg, tmp_path):
        """The input is not modified and progress only increases."""
        before = photo_jpg.read_bytes()
        seen = []
        ImageDriver().execute(photo_jpg, tmp_path / "o.jpg", _image_skill("blur"), {}, seen.append)
        assert photo_jpg.read_bytes() == before
        assert seen == sorted(seen)
        assert seen[-1] == 1.0

    def test_supports(self):
        """Only skills tagged image are supported."""
        assert ImageDriver().supports(_image_skill("blur"))
        assert not ImageDriver().supports(Skill(id="x", name="X", driver="cli"))


class TestRenderTemplate:
    """Tests for cli argument templating."""

    def test_placeholders(self):
        """input, output and params are substituted; unknown ones are kept."""
        rendered = render_template("{{input}} -> {{ output }} @{{fps}} {{nope}}", "/a", "/b", {"fps": 12})
        assert rendered == "/a -> /b @12 {{nope}}"


class TestCLIDriver:
    """Tests for external-process skills."""

    def test_runs_command(self, tmp_path):
        """A successful command writes the output file."""
        src = tmp_path / "in.txt"
        src.write_text("payload")
        out = tmp_path / "out.txt"

        CLIDriver().execute(src, out, _cli_skill(["-c", COPY_SCRIPT, "{{input}}", "{{output}}"]), {})

        assert out.read_text() == "payload"

    def test_non_zero_exit_reports_stderr(self, tmp_path):
        """Failures surface the trimmed stderr."""
        skill = _cli_skill(["-c", "import sys; sys.stderr.write('boom\\n'); sys.exit(3)"])
        with pytest.raises(DriverError, match="cli skill failed: boom$"):
            CLIDriver().execute(tmp_path / "in", tmp_path / "out", skill, {})

    def test_timeout(self, tmp_path):
        """Commands exceeding timeoutMs are killed."""
        skill = _cli_skill(["-c", "import time; time.sleep(10)"], timeout_ms=200)
        with pytest.raises(DriverError, match="timed out after 200 ms"):
            CLIDriver().execute(tmp_path / "in", tmp_path / "out", skill, {})

    def test_missing_binary(self, tmp_path):
        """An unknown command is a driver error."""
        skill = _cli_skill([], command="skillchain-no-such-binary")
        with pytest.raises(DriverError, match="command not found"):
            CLIDriver().execute(tmp_path / "in", tmp_path / "out", skill, {})

    def test_requires_tools_exec(self, tmp_path):
        """Skills without tools.exec may not spawn processes."""
        skill = _cli_skill(["-c", "pass"], permissions=("files.read",))
        with pytest.raises(DriverError, match="tools.exec"):
            CLIDriver().execute(tmp_path / "in", tmp_path / "out", skill, {})

    def test_community_needs_allow_list_or_exec_any(self, tmp_path):
        """Community skills may only run allow-listed tools by default."""
        src = tmp_path / "in.txt"
        src.write_text("x")
        args = ["-c", COPY_SCRIPT, "{{input}}", "{{output}}"]

        restricted = _cli_skill(args, source=SkillSource.COMMUNITY)
        with pytest.raises(DriverError, match="tools.exec.any"):
            CLIDriver().execute(src, tmp_path / "out.txt", restricted, {})

        trusted = _cli_skill(args, permissions=("tools.exec", "tools.exec.any"), source=SkillSource.COMMUNITY)
        CLIDriver().execute(src, tmp_path / "out.txt", trusted, {})
        assert (tmp_path / "out.txt").read_text() == "x"

    def test_allow_list(self):
        """Allow-listed tools match by base name, with or without .exe."""
        driver = CLIDriver()
        assert driver.is_allowed("/usr/bin/ffmpeg")
        assert driver.is_allowed("FFMPEG.EXE")
        assert not driver.is_allowed("python")
        assert CLIDriver(allowed_commands=["python"]).is_allowed("/usr/bin/python")

    def test_wrong_executor_type(self, tmp_path):
        """Non-cli executors are rejected."""
        skill = Skill(id="x", name="X", driver="cli", executor=ExecutorSpec(type="native"))
        with pytest.raises(DriverError, match="executor.type=cli"):
            CLIDriver().execute(tmp_path / "in", tmp_path / "out", skill, {})


class TestCLIThroughExecutor:
    """A declarative cli skill applied through the executor."""

    def test_output_extension_and_params(self, tmp_path, session, text_file):
        """outputExtension sets the new extension; params fill templates."""
        root = tmp_path / "cli_skills"
        write_skill(root, {
            "id": "suffix",
            "name": "Suffix",
            "version": "1",
            "executor": {
                "type": "external-process",
                "command": sys.executable,
                "args": [
                    "-c",
                    "import sys; data = open(sys.argv[1]).read(); open(sys.argv[2], 'w').write(data + sys.argv[3])",
                    "{{input}}", "{{output}}", "{{tail}}",
                ],
                "outputExtension": "log",
                "timeoutMs": 30000,
            },
            "params": [{"name": "tail", "type": "string", "default": "!"}],
            "permissions": ["tools.exec"],
        })
        executor = PipelineExecutor(SkillRegistry.from_roots(embedded_root=root), session)
        file = session.add_file(text_file("a.txt", "hi"))

        [updated] = executor.apply_skill([file.id], "suffix")

        assert updated.current_extension == ".log"
        assert updated.working_path.endswith("current.log")
        with open(updated.working_path, encoding="utf-8") as fh:
            assert fh.read() == "hi!"
