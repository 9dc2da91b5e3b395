from sharenite_mirror.cache.store import MemoryStore
from sharenite_mirror.models import DetailedRecord
from sharenite_mirror.services.preferences import PreferenceStore, apply_preferences


def test_apply_preferences_overrides_only_stored_flags():
    records = [
        DetailedRecord(id="1", title="One"),
        DetailedRecord(id="2", title="Two", is_completed=True),
    ]

    result = apply_preferences(records, {"1": {"is_favorite": True}})

    assert result[0].is_favorite is True
    assert result[0].is_completed is False
    assert result[1].is_completed is True
    assert records[0].is_favorite is False


def test_update_merges_flags():
    prefs = PreferenceStore(MemoryStore())

    prefs.update("1", is_favorite=True)
    entry = prefs.update("1", is_completed=True)

    assert entry == {"is_favorite": True, "is_completed": True}
    assert prefs.get("1") == entry


def test_preferences_survive_a_new_instance():
    store = MemoryStore()
    PreferenceStore(store).update("7", is_favorite=True)

    record = PreferenceStore(store).overlay(DetailedRecord(id="7", title="Seven"))

    assert record.is_favorite is True


def test_explicit_false_clears_a_flag():
    prefs = PreferenceStore(MemoryStore())
    prefs.update("1", is_favorite=True)
    prefs.update("1", is_favorite=False)

    record = prefs.overlay(DetailedRecord(id="1", title="One", is_favorite=True))

    assert record.is_favorite is False


def test_malformed_preferences_are_ignored():
    store = MemoryStore({"sharenite-preferences": "[]"})

    assert PreferenceStore(store).load() == {}


def test_non_dict_entries_are_dropped_on_load():
    store = MemoryStore({"sharenite-preferences": '{"1": true, "2": {"is_favorite": true}}'})
    prefs = PreferenceStore(store)

    assert prefs.load() == {"2": {"is_favorite": True}}
    assert prefs.overlay(DetailedRecord(id="1", title="One")).is_favorite is False


def test_apply_preferences_ignores_non_dict_entry():
    records = [DetailedRecord(id="1", title="One", is_favorite=True)]

    assert apply_preferences(records, {"1": True})[0].is_favorite is True
