import os

from cdnkit.storage.disk import DiskUsageProbe, get_default_cdn_directory


def test_default_directory_is_named_cdn():
    assert os.path.basename(get_default_cdn_directory()) == "cdn"


def test_real_usage_is_a_percentage(tmp_path):
    usage = DiskUsageProbe().usage(str(tmp_path))
    assert 0 <= usage <= 100


def test_simulated_high_usage_then_back_to_threshold(tmp_path):
    probe = DiskUsageProbe()
    probe.simulate_high_usage()
    assert probe.usage(str(tmp_path)) == 85
    assert probe.usage(str(tmp_path)) == 80
    assert 0 <= probe.usage(str(tmp_path)) <= 100


def test_marker_file_triggers_simulation_and_is_removed(tmp_path):
    marker = tmp_path / "SimulateDiskFull"
    marker.write_text("")
    probe = DiskUsageProbe()
    assert probe.usage(str(tmp_path)) == 85
    assert not marker.exists()


def test_missing_directory_reports_zero(tmp_path):
    assert DiskUsageProbe().usage(str(tmp_path / "absent")) == 0