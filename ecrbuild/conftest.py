from ecrbuild.tests.fixtures_build import *  # noqa
