# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Pytest configuration and fixtures for the translator tests."""

from pathlib import Path

import pytest

# A minimal two terminal device. One instance parameter with a given flag
# (area), one write-only flag (off), one model parameter (is).
TST_FILES = {
    "tstitf.h": """\
#ifndef DEV_TST
#define DEV_TST

extern IFparm TSTpTable[];
extern IFparm TSTmPTable[];
extern char *TSTnames[];
extern int TSTpTSize;
extern int TSTmPTSize;
extern int TSTnSize;

SPICEdev TSTinfo = {
    {
        "Tst",
        "Test device",
        &TSTnSize,
        &TSTnSize,
        TSTnames,
        &TSTpTSize,
        TSTpTable,
        &TSTmPTSize,
        TSTmPTable,
    },
    TSTparam,       /* param */
    TSTmParam,      /* model param */
    TSTload,
    TSTsetup,
    NULL,           /* unsetup */
    NULL,           /* pz setup */
    TSTtemp,
    TSTtrunc,
    NULL,           /* find branch */
    TSTacLoad,
    NULL,           /* accept */
    NULL,
    NULL,
    NULL,
    NULL,           /* set ic */
    TSTask,
    TSTmAsk,
    NULL,           /* pz load */
};

#endif
""",
    "tstdefs.h": """\
#ifndef TST
#define TST

#define TSTvoltage TSTstate
#define TSTcurrent TSTstate+1
#define TSTnumStates 2

#endif
""",
    "tst.c": """\
#include "ngspice.h"
#include "tstdefs.h"

IFparm TSTpTable[] = {
    IOP("area", TST_AREA, IF_REAL, "Area factor"),
    IP("off", TST_OFF, IF_FLAG, "Initially off"),
};

IFparm TSTmPTable[] = {
    IOP("is", TST_MOD_IS, IF_REAL, "Saturation current"),
};

char *TSTnames[] = {
    "T+",
    "T-"
};
""",
    "tstparam.c": """\
int
TSTparam(int param, IFvalue *value, GENinstance *inst, IFvalue *select)
{
    TSTinstance *here = (TSTinstance *)inst;
    switch (param) {
        case TST_AREA:
            here->TSTarea = value->rValue;
            here->TSTareaGiven = TRUE;
            break;
        case TST_OFF:
            here->TSToff = value->iValue;
            break;
        default:
            return(E_BADPARM);
    }
    return(OK);
}
""",
    "tstask.c": """\
int
TSTask(CKTcircuit *ckt, GENinstance *inst, int which, IFvalue *value, IFvalue *select)
{
    TSTinstance *here = (TSTinstance *)inst;
    switch (which) {
        case TST_AREA:
            value->rValue = here->TSTarea;
            return(OK);
        default:
            return(E_BADPARM);
    }
}
""",
    "tstmpar.c": """\
int
TSTmParam(int param, IFvalue *value, GENmodel *inModel)
{
    TSTmodel *model = (TSTmodel *)inModel;
    switch (param) {
        case TST_MOD_IS:
            model->TSTsatCur = value->rValue;
            model->TSTsatCurGiven = TRUE;
            break;
        default:
            return(E_BADPARM);
    }
    return(OK);
}
""",
    "tstmask.c": """\
int
TSTmAsk(CKTcircuit *ckt, GENmodel *inModel, int which, IFvalue *value)
{
    TSTmodel *model = (TSTmodel *)inModel;
    switch (which) {
        case TST_MOD_IS:
            value->rValue = model->TSTsatCur;
            return(OK);
        default:
            return(E_BADPARM);
    }
}
""",
    "tstsetup.c": """\
int
TSTsetup(SMPmatrix *matrix, GENmodel *inModel, CKTcircuit *ckt, int *states)
{
    TSTmodel *model = (TSTmodel *)inModel;
    TSTinstance *here;

    for( ; model != NULL; model = model->TSTnextModel ) {
        if (!model->TSTsatCurGiven) {
            model->TSTsatCur = 1e-14;
        }
        for (here = model->TSTinstances; here != NULL ;
                here = here->TSTnextInstance) {
            if (!here->TSTareaGiven) {
                here->TSTarea = 1;
            }
            here->TSTstate = *states;
            *states += TSTnumStates;

            TSTALLOC(TSTposPosPtr, TSTposNode, TSTposNode);
            TSTALLOC(TSTposNegPtr, TSTposNode, TSTnegNode);
            TSTALLOC(TSTnegPosPtr, TSTnegNode, TSTposNode);
            TSTALLOC(TSTnegNegPtr, TSTnegNode, TSTnegNode);
        }
    }
    return(OK);
}
""",
    "tsttemp.c": """\
int
TSTtemp(GENmodel *inModel, CKTcircuit *ckt)
{
    TSTmodel *model = (TSTmodel *)inModel;
    TSTinstance *here;
    double vt;

    for( ; model != NULL; model = model->TSTnextModel ) {
        vt = CONSTKoverQ * ckt->CKTtemp;
        for (here = model->TSTinstances; here != NULL ;
                here = here->TSTnextInstance) {
            here->TSTtSatCur = model->TSTsatCur * here->TSTarea * exp(1 / vt);
        }
    }
    return(OK);
}
""",
    "tstload.c": """\
int
TSTload(GENmodel *inModel, CKTcircuit *ckt)
{
    TSTmodel *model = (TSTmodel *)inModel;
    TSTinstance *here;
    double vd;
    double cd;
    double gd;

    for( ; model != NULL; model = model->TSTnextModel ) {
        for (here = model->TSTinstances; here != NULL ;
                here = here->TSTnextInstance) {
            vd = *(ckt->CKTrhsOld + here->TSTposNode) - *(ckt->CKTrhsOld + here->TSTnegNode);
            gd = here->TSTtSatCur;
            cd = gd * vd;
            *(ckt->CKTstate0 + here->TSTvoltage) = vd;
            *(ckt->CKTstate0 + here->TSTcurrent) = cd;
            *(ckt->CKTrhs + here->TSTposNode) -= cd;
            *(ckt->CKTrhs + here->TSTnegNode) += cd;
            *(here->TSTposPosPtr) += gd;
            *(here->TSTposNegPtr) -= gd;
            *(here->TSTnegPosPtr) -= gd;
            *(here->TSTnegNegPtr) += gd;
        }
    }
    return(OK);
}
""",
    "tstacld.c": """\
int
TSTacLoad(GENmodel *inModel, CKTcircuit *ckt)
{
    TSTmodel *model = (TSTmodel *)inModel;
    TSTinstance *here;
    double gd;
    double xc;

    for( ; model != NULL; model = model->TSTnextModel ) {
        for (here = model->TSTinstances; here != NULL ;
                here = here->TSTnextInstance) {
            gd = here->TSTtSatCur;
            xc = here->TSTarea * ckt->CKTomega;
            *(here->TSTposPosPtr) += gd;
            *(here->TSTposPosPtr + 1) += xc;
            *(here->TSTposNegPtr) -= gd;
            *(here->TSTposNegPtr + 1) -= xc;
        }
    }
    return(OK);
}
""",
    "tsttrunc.c": """\
int
TSTtrunc(GENmodel *inModel, CKTcircuit *ckt, double *timeStep)
{
    TSTmodel *model = (TSTmodel *)inModel;
    TSTinstance *here;

    for( ; model != NULL; model = model->TSTnextModel) {
        for(here = model->TSTinstances; here != NULL;
                here = here->TSTnextInstance) {
            CKTterr(here->TSTcurrent, ckt, timeStep);
        }
    }
    return(OK);
}
""",
}


@pytest.fixture
def device_folder(tmp_path) -> Path:
    """A device folder holding the sources of the test device."""
    folder = tmp_path / "tst"
    folder.mkdir()
    for name, content in TST_FILES.items():
        (folder / name).write_text(content)
    return folder


@pytest.fixture
def device_source(device_folder):
    """The test device opened as a DeviceSource."""
    from cdevparser.device import DeviceSource

    return DeviceSource(device_folder, "tstitf.h", "tstdefs.h")


@pytest.fixture
def model_loop() -> str:
    """An entry point with the usual model and instance loops."""
    return """\
int
XYZload(GENmodel *inModel, CKTcircuit *ckt)
{
    XYZmodel *model = (XYZmodel *)inModel;
    XYZinstance *here;
    double vt;
    int count;
    double g;

    for( ; model != NULL; model = model->XYZnextModel ) {
        vt = model->XYZtnom * 2;
        count = 0;
        for (here = model->XYZinstances; here != NULL ;
                here = here->XYZnextInstance) {
            g = here->XYZarea / vt;
            count = 1;
        }
    }
    return(OK);
}
"""
