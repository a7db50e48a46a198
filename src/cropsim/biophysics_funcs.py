"""
Biophysics helper functions used across more than one cropsim module
"""

import numpy as np

ABSOLUTE_ZERO = -273.15    ## degrees Celsius
ATMOSPHERIC_PRESSURE_AT_SEA_LEVEL = 101325.0    ## Pa


def saturation_vapor_pressure(T):
    """
    Computes the saturation vapor pressure using Tetens' formula

    T = air temperature (degC)
    e_s = saturation vapor pressure of water (Pa)
    """
    e_s = 1000 * 0.61078 * np.exp( (17.269*T) / (237.3+T) )
    return e_s


def thermal_time_rate_linear(temp, tbase):
    """
    Rate of thermal time accumulation with a single cardinal temperature.

    Parameters
    ----------
    temp : float
        Air temperature (degrees Celsius)
    tbase : float
        Base temperature below which development stops (degrees Celsius)

    Returns
    -------
    Daily rate of thermal time accumulation (degrees Celsius, i.e. degC d per day)

    References
    ----------
    Campbell and Norman (1998) An Introduction to Environmental Biophysics, section 2.7
    """
    if temp <= tbase:
        return 0.0
    return temp - tbase


def thermal_time_rate_peaked(Th, Tb, Tu, Topt, normalise=False):
    """
    Calculates the thermal time rate according to a peaked temperature response model.
    The temperature response model is based on that of Yan and Hunt (1999, doi:10.1006/anbo.1999.0955).

    Parameters
    ----------
    Th : float
        Temperature (degrees Celsius)
    Tb : float
        Minimum threshold temperature or "base" temperature (degrees Celsius)
    Tu : float
        Upper threshold temperature or "upper" temperature (degrees Celsius)
    Topt : float
        Thermal optimum temperature (degrees Celsius)
    normalise : bool
        Normalize the thermal time function to range between 0-1.

    Returns
    -------
    Thermal time rate: float
    """
    if Th < Tb or Th > Tu:
        return 0.0
    response = ((Tu-Th)/(Tu-Topt)) * ((Th-Tb)/(Topt-Tb))**((Topt-Tb)/(Tu-Topt))
    if normalise:
        return response
    return response * (Topt-Tb)


def ksene(rate, alpha, beta, DVI):
    """
    Senescence coefficient expressed as a logistic function of the development index.

    Parameters
    ----------
    rate : float
        Maximum fraction of the organ senesced per time step (-)
    alpha, beta : float
        Logistic function shape parameters (-)
    DVI : float
        Development index (-)

    Returns
    -------
    kSene : float
        Senescence coefficient (-)
    """
    return rate / (1.0 + np.exp(alpha + beta * DVI))


def light_macro_environment(cosine_zenith_angle, atmospheric_pressure, atmospheric_transmittance, atmospheric_scattering):
    """
    Calculates the amount of sunlight scattered out of the direct beam by the atmosphere.

    Parameters
    ----------
    cosine_zenith_angle : float
        Cosine of the solar zenith angle (-). Values <= 0 mean the sun is below the horizon.
    atmospheric_pressure : float
        Local atmospheric pressure (Pa)
    atmospheric_transmittance : float
        Fraction of light transmitted through a small volume of atmosphere (-)
    atmospheric_scattering : float
        Atmospheric scattering factor (-)

    Returns
    -------
    (direct_transmittance, diffuse_transmittance, direct_fraction, diffuse_fraction) : tuple of floats

    References
    ----------
    Campbell and Norman (1998) An Introduction to Environmental Biophysics, chapter 11 (Eq. 11.1 and 11.13)
    """
    pressure_ratio = atmospheric_pressure / ATMOSPHERIC_PRESSURE_AT_SEA_LEVEL

    # Sun below the horizon: no direct light and all transmittance is diffuse
    if cosine_zenith_angle <= 0:
        direct_transmittance = 0.0
        diffuse_transmittance = 1.0
    else:
        direct_transmittance = atmospheric_transmittance ** (pressure_ratio / cosine_zenith_angle)
        diffuse_transmittance = atmospheric_scattering * (1 - direct_transmittance) * cosine_zenith_angle

    direct_fraction = direct_transmittance / (direct_transmittance + diffuse_transmittance)
    diffuse_fraction = 1.0 - direct_fraction
    return direct_transmittance, diffuse_transmittance, direct_fraction, diffuse_fraction


def ball_berry_gs(assimilation, Catm, rh, b0, b1, gbw, leaf_temperature, air_temperature):
    """
    Stomatal conductance to water vapour following Ball, Woodrow and Berry (1987).

    Parameters
    ----------
    assimilation : float
        Net CO2 assimilation rate (mol m-2 s-1)
    Catm : float
        Ambient CO2 mole fraction (mol mol-1)
    rh : float
        Ambient relative humidity (Pa Pa-1)
    b0 : float
        Ball-Berry intercept (mol m-2 s-1)
    b1 : float
        Ball-Berry slope (-)
    gbw : float
        Leaf boundary layer conductance to water vapour (mol m-2 s-1)
    leaf_temperature : float
        Leaf temperature (degrees Celsius)
    air_temperature : float
        Air temperature (degrees Celsius)

    Returns
    -------
    gs : float
        Stomatal conductance to water vapour (mmol m-2 s-1)

    Notes
    -----
    The relative humidity at the leaf surface is approximated by expressing the ambient vapour
    pressure relative to the saturation vapour pressure at leaf temperature, bounded to [0.01, 1].
    """
    hs_min = 0.01
    Cs = Catm - (1.4 / gbw) * assimilation   ## CO2 at the leaf surface, mol mol-1
    if assimilation > 0 and Cs > 0:
        hs = rh * saturation_vapor_pressure(air_temperature) / saturation_vapor_pressure(leaf_temperature)
        hs = min(max(hs, hs_min), 1.0)
        gswmol = b1 * hs * assimilation / Cs + b0
    else:
        gswmol = b0
    return gswmol * 1e3


def penman_monteith_delta_t(slope_water_vapor, psychrometric_parameter, latent_heat_vaporization, ga, gc, net_irradiance, vapor_density_deficit):
    """
    Leaf to air temperature difference from the Penman-Monteith energy balance.

    Parameters
    ----------
    slope_water_vapor : float
        Slope of the saturation water vapour density curve (kg m-3 K-1)
    psychrometric_parameter : float
        Psychrometric parameter (kg m-3 K-1)
    latent_heat_vaporization : float
        Latent heat of vaporization of water (J kg-1)
    ga : float
        Leaf boundary layer conductance (m s-1)
    gc : float
        Leaf stomatal conductance (m s-1)
    net_irradiance : float
        Leaf net irradiance (W m-2)
    vapor_density_deficit : float
        Vapour density deficit (kg m-3)

    Returns
    -------
    delta_t : float
        Leaf minus air temperature (K)

    References
    ----------
    Thornley and Johnson (1990) Plant and Crop Modelling, p. 418, Eq. 14.11e
    """
    return (
        (net_irradiance * (1 / ga + 1 / gc) - latent_heat_vaporization * vapor_density_deficit)
        / (latent_heat_vaporization * (slope_water_vapor + psychrometric_parameter * (1 + ga / gc)))
    )


def non_rectangular_hyperbola(Q, Pmax, alpha, theta):
    """
    Non-rectangular hyperbola light response, the smaller root of
    theta*P^2 - (alpha*Q + Pmax)*P + alpha*Q*Pmax = 0.

    Parameters
    ----------
    Q : float or array_like
        Absorbed photon flux density (mol m-2 s-1)
    Pmax : float
        Light saturated rate
    alpha : float
        Initial slope of the light response (mol mol-1)
    theta : float
        Curvature parameter, 0 < theta <= 1 (-)

    Returns
    -------
    Rate, in the units of Pmax
    """
    return (alpha*Q + Pmax - np.sqrt((alpha*Q + Pmax)**2 - 4*alpha*theta*Q*Pmax))/(2*theta)
