import math
import pytest
from types import SimpleNamespace

from topreco.kinematics.four_vector import FourVector
from topreco.smearing.histograms import SmearingHistogram, SmearingHistograms
from topreco.utils import constants

B_MASS = 4.8


def two_body_decay(parent, m1, m2, cos_theta, phi):
    """Decay `parent` into masses m1, m2 at the given rest-frame angles, returned in the lab frame."""
    big_m = parent.m
    p = math.sqrt((big_m ** 2 - (m1 + m2) ** 2) * (big_m ** 2 - (m1 - m2) ** 2)) / (2.0 * big_m)
    sin_theta = math.sqrt(1.0 - cos_theta ** 2)
    px, py, pz = p * sin_theta * math.cos(phi), p * sin_theta * math.sin(phi), p * cos_theta

    first = FourVector(px, py, pz, math.sqrt(p * p + m1 * m1))
    second = FourVector(-px, -py, -pz, math.sqrt(p * p + m2 * m2))
    bx, by, bz = parent.boost_vector()
    return first.boost(bx, by, bz), second.boost(bx, by, bz)


def make_ttbar_event(top_pt=60.0, top_eta=0.4, top_phi=0.3,
                     antitop_pt=45.0, antitop_eta=-0.7, antitop_phi=2.6):
    """Exact dilepton ttbar event: t -> b mu+ nu, tbar -> bbar e- nubar at nominal masses."""
    top = FourVector.from_pt_eta_phi_m(top_pt, top_eta, top_phi, constants.TOP_MASS)
    antitop = FourVector.from_pt_eta_phi_m(antitop_pt, antitop_eta, antitop_phi, constants.TOP_MASS)

    w_plus, b = two_body_decay(top, constants.W_MASS, B_MASS, 0.3, 1.1)
    lepbar, nu = two_body_decay(w_plus, constants.MUON_MASS, 0.0, -0.4, 2.2)
    w_minus, bbar = two_body_decay(antitop, constants.W_MASS, B_MASS, -0.6, 4.0)
    lep, nubar = two_body_decay(w_minus, constants.ELECTRON_MASS, 0.0, 0.5, 0.7)

    return SimpleNamespace(
        top=top, antitop=antitop,
        b=b, bbar=bbar,
        lepbar=lepbar, lep=lep,
        nu=nu, nubar=nubar,
        # Sign convention of the event tables: positive code for the antilepton
        pdg_id_lep=-constants.ELECTRON_PDG_ID,
        pdg_id_lepbar=constants.MUON_PDG_ID,
        emiss_x=nu.px + nubar.px,
        emiss_y=nu.py + nubar.py,
    )


@pytest.fixture
def ttbar_event():
    return make_ttbar_event()


@pytest.fixture
def narrow_histograms():
    """Resolution histograms a few per mille wide, so smeared events keep their solutions."""
    mlb_edges = [10.0 * i for i in range(21)]
    return SmearingHistograms({
        constants.HIST_JET_ENERGY: SmearingHistogram(constants.HIST_JET_ENERGY, [0.99, 1.0, 1.01], [1, 1]),
        constants.HIST_JET_ANGLE: SmearingHistogram(constants.HIST_JET_ANGLE, [0.0, 0.0025, 0.005], [2, 1]),
        constants.HIST_LEP_ENERGY: SmearingHistogram(constants.HIST_LEP_ENERGY, [0.998, 1.002], [1]),
        constants.HIST_W_MASS: SmearingHistogram(constants.HIST_W_MASS, [80.3, 80.4, 80.5], [1, 1]),
        constants.HIST_MLB: SmearingHistogram(constants.HIST_MLB, mlb_edges, [1] * 20),
    }, source="narrow")


@pytest.fixture
def ttbar_factory():
    return make_ttbar_event
