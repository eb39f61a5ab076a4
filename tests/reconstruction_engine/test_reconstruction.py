import math
import pytest

from topreco import get_tlv, sonn
from topreco.kinematics.four_vector import FourVector, FourVectorCollection
from topreco.reconstruction_engine.reconstruction import EventInputs, TopReconstructor
from topreco.utils import constants
from topreco.utils.exceptions import ConfigurationError, KinematicInputError, ReconstructionError


def _sonn(event, **kwargs):
    return sonn(
        event.lep, event.lepbar, event.pdg_id_lep, event.pdg_id_lepbar,
        event.b, event.bbar, True, True,
        event.emiss_x, event.emiss_y,
        **kwargs,
    )


def _inputs(event, **overrides):
    fields = dict(
        lep=event.lep, lepbar=event.lepbar,
        pdg_id_lep=event.pdg_id_lep, pdg_id_lepbar=event.pdg_id_lepbar,
        jet=event.b, jetbar=event.bbar, isb_jet=True, isb_jetbar=False,
        emiss_x=event.emiss_x, emiss_y=event.emiss_y,
    )
    fields.update(overrides)
    return EventInputs(**fields)


def test_unsmeared_reconstruction_returns_top_pair(ttbar_event):
    tops = _sonn(ttbar_event)
    assert isinstance(tops, FourVectorCollection)
    assert tops.n == 2
    top, antitop = get_tlv(tops, 0), get_tlv(tops, 1)
    assert top.m == pytest.approx(constants.TOP_MASS, abs=0.05)
    assert antitop.m == pytest.approx(constants.TOP_MASS, abs=0.05)
    with pytest.raises(IndexError):
        get_tlv(tops, 2)


def test_unsmeared_picks_smallest_mtt(ttbar_event):
    reconstructor = TopReconstructor()
    event = _inputs(ttbar_event)
    tops = reconstructor.sonnenschein(event)
    best = min(s.mtt for s in reconstructor.solutions(event))
    assert (tops[0] + tops[1]).m <= best + 1e-6


def test_smeared_reconstruction_is_reproducible(ttbar_event, narrow_histograms):
    config = {'smearing': {'n_smear': 30}}
    first = _sonn(ttbar_event, smearing=narrow_histograms, config=config, seed=99)
    second = _sonn(ttbar_event, smearing=narrow_histograms, config=config, seed=99)
    assert first.n == 2
    assert first == second


def test_smeared_tops_are_on_shell(ttbar_event, narrow_histograms):
    tops = _sonn(ttbar_event, smearing=narrow_histograms, config={'smearing': {'n_smear': 30}})
    assert tops.n == 2
    for top in tops:
        assert top.m == pytest.approx(constants.TOP_MASS, rel=1e-9)


def test_disabled_smearing_matches_unsmeared(ttbar_event, narrow_histograms):
    disabled = _sonn(ttbar_event, smearing=narrow_histograms, config={'smearing': {'enabled': False}})
    assert disabled == _sonn(ttbar_event)


def test_btag_requirement(ttbar_event):
    tops = sonn(
        ttbar_event.lep, ttbar_event.lepbar, ttbar_event.pdg_id_lep, ttbar_event.pdg_id_lepbar,
        ttbar_event.b, ttbar_event.bbar, False, True,
        ttbar_event.emiss_x, ttbar_event.emiss_y,
        config={'reconstruction': {'min_btags': 2}},
    )
    assert tops.n == 0


def test_unsolvable_event_returns_empty(ttbar_event):
    tops = sonn(
        ttbar_event.lep, ttbar_event.lepbar, ttbar_event.pdg_id_lep, ttbar_event.pdg_id_lepbar,
        ttbar_event.b, ttbar_event.bbar, True, True,
        10000.0, -10000.0,
    )
    assert tops.n == 0
    with pytest.raises(IndexError):
        get_tlv(tops, 0)


@pytest.mark.parametrize("pdg_id_lep, pdg_id_lepbar", [(22, 13), (-11, -13), (11, 13)])
def test_invalid_lepton_codes_raise(ttbar_event, pdg_id_lep, pdg_id_lepbar):
    with pytest.raises(KinematicInputError):
        sonn(ttbar_event.lep, ttbar_event.lepbar, pdg_id_lep, pdg_id_lepbar,
             ttbar_event.b, ttbar_event.bbar, True, True,
             ttbar_event.emiss_x, ttbar_event.emiss_y)


def test_non_finite_inputs_raise(ttbar_event):
    with pytest.raises(KinematicInputError):
        sonn(ttbar_event.lep, ttbar_event.lepbar, ttbar_event.pdg_id_lep, ttbar_event.pdg_id_lepbar,
             FourVector(math.nan, 0.0, 0.0, 10.0), ttbar_event.bbar, True, True,
             ttbar_event.emiss_x, ttbar_event.emiss_y)
    with pytest.raises(KinematicInputError):
        sonn(ttbar_event.lep, ttbar_event.lepbar, ttbar_event.pdg_id_lep, ttbar_event.pdg_id_lepbar,
             ttbar_event.b, ttbar_event.bbar, True, True,
             math.inf, ttbar_event.emiss_y)


def test_invalid_config_raises(ttbar_event):
    with pytest.raises(ConfigurationError):
        _sonn(ttbar_event, config={'masses': {'top': 50.0}})


def test_reco_tops_needs_histograms(ttbar_event):
    with pytest.raises(ReconstructionError):
        TopReconstructor().reco_tops(_inputs(ttbar_event))


def test_prepare_puts_leptons_on_shell(ttbar_event):
    massless = FourVector.from_pt_eta_phi_m(ttbar_event.lepbar.pt, ttbar_event.lepbar.eta, ttbar_event.lepbar.phi, 0.0)
    prepared = TopReconstructor().prepare(_inputs(ttbar_event, lepbar=massless))
    assert prepared.lepbar.m == pytest.approx(constants.MUON_MASS, rel=1e-4)
    assert prepared.n_btags == 1
