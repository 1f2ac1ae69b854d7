from loadsort.game.installation import Installation, Plugin, is_plugin_filename, strip_ghost_extension


def test_is_plugin_filename():
    assert is_plugin_filename("Foo.esp")
    assert is_plugin_filename("Foo.ESM")
    assert is_plugin_filename("Foo.esl.ghost")
    assert not is_plugin_filename("Foo.bsa")
    assert not is_plugin_filename("Foo.ghost")


def test_strip_ghost_extension():
    assert strip_ghost_extension("Foo.esp.GHOST") == "Foo.esp"
    assert strip_ghost_extension("Foo.esp") == "Foo.esp"


class TestInstallation:
    def test_plugin_lookup_is_case_insensitive(self, installation):
        assert installation.get_plugin("base.ESM").name == "Base.esm"
        assert installation.get_plugin("Missing.esp") is None

    def test_add_plugin_replaces_existing_record(self, installation):
        installation.add_plugin(Plugin("FOO.esp", version="2.0"))

        assert installation.get_plugin("Foo.esp").version == "2.0"
        assert len(installation.get_plugins()) == 3

    def test_active_plugins(self, installation):
        assert installation.is_plugin_active("foo.esp")
        assert not installation.is_plugin_active("Bar.esp")

        installation.set_active_plugins(["Bar.esp"])

        assert installation.is_plugin_active("Bar.esp")
        assert not installation.is_plugin_active("Foo.esp")

    def test_load_order_index(self, installation):
        assert installation.get_load_order_index("bar.esp") == 2
        assert installation.get_load_order_index("New.esp") is None
        assert installation.get_load_order() == ["Base.esm", "Foo.esp", "Bar.esp"]

    def test_file_version_without_reader(self, installation, data_path):
        assert installation.read_file_version(data_path / "tool.dll") is None

    def test_file_version_reader(self, data_path):
        installation = Installation(data_path, file_version_reader=lambda path: path.name)
        assert installation.read_file_version(data_path / "tool.dll") == "tool.dll"
